"""Per-secret refresh lock with stale-lock recovery."""

import hashlib
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Tuple

from ..exceptions import LockUnavailableError
from ..metrics import record_stale_lock_recovered
from .backends import LockStore

logger = logging.getLogger(__name__)

LOCK_PREFIX = "vault-lease-cache-lock-"
STALE_LOCK_SECONDS = 300


def lock_name(secret: str) -> str:
    """Derive the lock name guarding refreshes of a secret."""
    return f"{LOCK_PREFIX}{hashlib.sha256(secret.encode()).hexdigest()}"


def timestamp_key(secret: str) -> str:
    """Derive the option key holding a lock's acquisition time."""
    return f"{lock_name(secret)}-acquired-at"


class RefreshLock:
    """Ensures at most one refresh runs per secret.

    The underlying locks never expire on their own, so every successful
    acquisition also records a timestamp in the store's option space. A
    process that dies while holding a lock leaves that timestamp behind; once
    it is older than ``stale_after`` seconds any later attempt reclaims the
    lock.

    The timestamp doubles as the holder's token: the lock and its timestamp
    are only ever removed together, and only while the timestamp is still
    the one the remover read or wrote.

    State transitions::

        Unlocked --acquire--> Locked(ts) --release(ts)--> Unlocked
        Locked(ts) --recover_if_stale, age > stale_after--> Unlocked
    """

    def __init__(
        self,
        store: LockStore,
        clock: Callable[[], float] = time.time,
        stale_after: int = STALE_LOCK_SECONDS
    ):
        self.store = store
        self.stale_after = stale_after
        self._clock = clock

    async def acquire(self, secret: str) -> Optional[float]:
        """Try to take the lock for a secret without waiting.

        Returns the recorded acquisition time, which must be passed back to
        ``release``, or None if the lock is taken.
        """
        name = lock_name(secret)
        if not await self.store.try_acquire(name):
            return None

        acquired_at = self._clock()
        try:
            await self.store.set_option(timestamp_key(secret), acquired_at, autoload=False)
        except BaseException:
            # A lock without a timestamp could never be reclaimed
            await self.store.release(name)
            raise

        logger.debug("Acquired refresh lock for %s", secret)
        return acquired_at

    async def release(self, secret: str, acquired_at: Any) -> bool:
        """Release the lock for a secret taken at ``acquired_at``.

        Returns False, leaving the store untouched, if the lock has since been
        reclaimed as stale or taken by someone else.
        """
        released = await self.store.release_if_option(lock_name(secret), timestamp_key(secret), acquired_at)
        if not released:
            logger.debug("Refresh lock for %s was no longer ours to release", secret)
        return released

    async def acquired_at(self, secret: str) -> Optional[float]:
        """Get when the lock for a secret was taken, if recorded."""
        _, acquired_at = await self._read_timestamp(secret)
        return acquired_at

    async def recover_if_stale(self, secret: str) -> bool:
        """Reclaim an abandoned lock.

        Returns True if the lock was presumed abandoned and cleared. A lock
        without a timestamp belongs to a healthy concurrent refresh and is
        left alone.
        """
        raw, acquired_at = await self._read_timestamp(secret)
        if acquired_at is None:
            return False

        age = self._clock() - acquired_at
        if age <= self.stale_after:
            logger.debug("Refresh of %s already in progress (%.0fs)", secret, age)
            return False

        # Clears nothing if the timestamp changed since it was read
        if not await self.release(secret, raw):
            return False

        logger.warning("Cleared stale refresh lock for %s held for %.0fs", secret, age)
        record_stale_lock_recovered()
        return True

    @asynccontextmanager
    async def hold(self, secret: str) -> AsyncIterator[float]:
        """Hold the lock for a secret for the duration of a block.

        Raises LockUnavailableError if the lock is taken.
        """
        acquired_at = await self.acquire(secret)
        if acquired_at is None:
            raise LockUnavailableError(lock_name(secret))
        try:
            yield acquired_at
        finally:
            await self.release(secret, acquired_at)

    async def _read_timestamp(self, secret: str) -> Tuple[Any, Optional[float]]:
        """Read the stored timestamp both as stored and parsed."""
        value = await self.store.get_option(timestamp_key(secret))
        if value is None:
            return None, None
        try:
            return value, float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed lock timestamp for %s: %r", secret, value)
            return value, None
