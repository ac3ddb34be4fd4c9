"""Cached access to leased Vault secrets."""

import logging
import time
from typing import Callable, Optional

from redis.asyncio import Redis

from .cache import SecretCache, create_cache_store, ttl_for
from .config import VaultConfig
from .exceptions import CacheStoreError, FetchError, LockUnavailableError, UnavailableError
from .fetcher import SecretFetcher
from .locking import RefreshLock, create_lock_store
from .metrics import record_cache_hit, record_cache_miss, record_cache_write_failure, record_refresh
from .scheduling import REFRESH_TASK, MemoryTaskQueue, RefreshScheduler, TaskQueue
from .types import RefreshOutcome, SecretRecord

logger = logging.getLogger(__name__)


class SecretManager:
    """Serves secrets from cache and keeps them fresh ahead of lease expiry.

    ``get_secret`` is the read path used by applications. ``update_secret``
    is the task run by the refresh scheduler; ``set_up`` registers it with
    the task queue.
    """

    def __init__(
        self,
        config: VaultConfig,
        fetcher: SecretFetcher,
        cache: SecretCache,
        lock: RefreshLock,
        scheduler: RefreshScheduler,
        clock: Callable[[], float] = time.time
    ):
        self.config = config
        self.fetcher = fetcher
        self.cache = cache
        self.lock = lock
        self.scheduler = scheduler
        self._clock = clock

    def set_up(self) -> None:
        """Register the refresh task with the scheduler's task queue."""
        self.scheduler.queue.register(REFRESH_TASK, self.update_secret)

    async def get_secret(self, name: str) -> SecretRecord:
        """Get a secret, from cache when possible.

        A miss reads the secret from Vault, caches it and schedules its next
        refresh. Raises UnavailableError if the secret is not cached and
        cannot be fetched.
        """
        record = await self._read_cache(name)
        if record is not None:
            record_cache_hit()
            return record

        record_cache_miss()
        try:
            record = await self.get_secret_from_vault(name)
        except FetchError as e:
            logger.warning("Unable to fetch secret %s: %s", name, e)
            raise UnavailableError(name) from e

        await self._store(record)
        await self.scheduler.schedule_next(record)
        return record

    async def get_secret_from_vault(self, name: str) -> SecretRecord:
        """Read a secret straight from Vault, bypassing the cache."""
        return await self.fetcher.fetch(name)

    async def update_secret(self, name: str) -> RefreshOutcome:
        """Refresh a cached secret before its lease expires.

        Only one refresh per secret runs at a time. When another holds the
        lock this invocation either exits or, if that lock is stale, clears
        it and exits; the next scheduled attempt then runs normally.
        Failures are logged, never raised.
        """
        try:
            outcome = await self._update(name)
        except Exception as e:
            logger.error("Refresh of %s aborted: %s", name, e)
            outcome = RefreshOutcome.FAILED

        if outcome == RefreshOutcome.FAILED and self.config.refresh_retry_delay:
            try:
                await self.scheduler.schedule(name, self._clock() + self.config.refresh_retry_delay)
            except Exception as e:
                logger.error("Unable to schedule a retry for %s: %s", name, e)

        record_refresh(outcome.value)
        return outcome

    async def invalidate(self, name: str) -> None:
        """Drop a secret from the cache so the next read fetches it again."""
        await self.cache.delete(name)

    async def _update(self, name: str) -> RefreshOutcome:
        """Refresh under the secret's lock, or recover the lock if abandoned."""
        try:
            async with self.lock.hold(name):
                return await self._refresh(name)
        except LockUnavailableError:
            if await self.lock.recover_if_stale(name):
                return RefreshOutcome.RECOVERED
            return RefreshOutcome.LOCKED

    async def _refresh(self, name: str) -> RefreshOutcome:
        """Fetch, cache and reschedule a secret while holding its lock."""
        try:
            record = await self.get_secret_from_vault(name)
        except FetchError as e:
            logger.warning("Scheduled refresh of %s failed: %s", name, e)
            return RefreshOutcome.FAILED

        await self._store(record)
        await self.scheduler.schedule_next(record)
        logger.info("Refreshed secret %s (lease %s)", name, record.lease_id or "-")
        return RefreshOutcome.REFRESHED

    async def _read_cache(self, name: str) -> Optional[SecretRecord]:
        """Read the cache, treating backend failures as a miss."""
        try:
            return await self.cache.get(name)
        except CacheStoreError as e:
            logger.warning("Cache read failed for %s: %s", name, e)
            return None

    async def _store(self, record: SecretRecord) -> None:
        """Write a fresh record to the cache. Failures are not retried."""
        ttl = None
        if self.config.expire_cache_with_lease:
            ttl = ttl_for(record, self.config.cache_ttl_margin)

        try:
            await self.cache.put(record.name, record, ttl)
        except CacheStoreError as e:
            record_cache_write_failure()
            logger.warning("Cache write failed for %s: %s", record.name, e)


def create_secret_manager(
    config: VaultConfig,
    redis_client: Optional[Redis] = None,
    task_queue: Optional[TaskQueue] = None,
    fetcher: Optional[SecretFetcher] = None
) -> SecretManager:
    """Build a secret manager from configuration and register its refresh task."""
    cache = SecretCache(create_cache_store(config, redis_client), prefix=config.cache_prefix)
    lock = RefreshLock(create_lock_store(config, redis_client), stale_after=config.stale_lock_seconds)
    scheduler = RefreshScheduler(task_queue or MemoryTaskQueue())

    manager = SecretManager(
        config=config,
        fetcher=fetcher or SecretFetcher(config),
        cache=cache,
        lock=lock,
        scheduler=scheduler
    )
    manager.set_up()
    return manager
