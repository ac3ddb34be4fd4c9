"""Named lock stores backing the refresh lock."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

from redis.asyncio import Redis
from redis.exceptions import WatchError

from ..config import VaultConfig
from ..exceptions import ConfigurationError, LockNotFoundError

logger = logging.getLogger(__name__)


class LockStore(ABC):
    """Named try-locks plus a small durable option space.

    Locks carry no expiry and no payload; anything needed to recover an
    abandoned lock is kept in the option space.
    """

    @abstractmethod
    async def try_acquire(self, name: str) -> bool:
        """Take a lock without waiting. Returns True if acquired."""
        pass

    @abstractmethod
    async def release(self, name: str) -> None:
        """Release a lock. Raises LockNotFoundError if it is not held."""
        pass

    @abstractmethod
    async def release_if_option(self, name: str, key: str, expected: Any) -> bool:
        """Release a lock and delete an option as one step.

        Does nothing unless the option still holds ``expected`` (compared as
        strings). Returns True if the lock was released.
        """
        pass

    @abstractmethod
    async def get_option(self, key: str, default: Any = None) -> Any:
        """Read an option."""
        pass

    @abstractmethod
    async def set_option(self, key: str, value: Any, autoload: bool = False) -> None:
        """Write an option. ``autoload`` is a preload hint for stores that support one."""
        pass

    @abstractmethod
    async def delete_option(self, key: str) -> None:
        """Delete an option if present."""
        pass


class MemoryLockStore(LockStore):
    """Single-process lock store.

    Safe under asyncio because no method awaits between checking and
    updating state.
    """

    def __init__(self):
        self._held: Set[str] = set()
        self._options: Dict[str, Any] = {}

    async def try_acquire(self, name: str) -> bool:
        """Take a lock if nobody holds it."""
        if name in self._held:
            logger.debug("Lock %s already held", name)
            return False
        self._held.add(name)
        return True

    async def release(self, name: str) -> None:
        """Release a held lock."""
        if name not in self._held:
            raise LockNotFoundError(name)
        self._held.discard(name)

    async def release_if_option(self, name: str, key: str, expected: Any) -> bool:
        """Release a lock if the option still holds ``expected``."""
        current = self._options.get(key)
        if current is None or str(current) != str(expected):
            return False
        self._held.discard(name)
        del self._options[key]
        return True

    async def get_option(self, key: str, default: Any = None) -> Any:
        """Read an option."""
        return self._options.get(key, default)

    async def set_option(self, key: str, value: Any, autoload: bool = False) -> None:
        """Write an option."""
        self._options[key] = value

    async def delete_option(self, key: str) -> None:
        """Delete an option."""
        self._options.pop(key, None)

    def is_held(self, name: str) -> bool:
        """Check if a lock is currently held."""
        return name in self._held

    def clear(self) -> None:
        """Clear all locks and options. Only for testing."""
        self._held.clear()
        self._options.clear()


class RedisLockStore(LockStore):
    """Lock store shared by every process using the same Redis."""

    def __init__(self, client: Redis, prefix: str = "vault-lease-cache:"):
        self.client = client
        self.prefix = prefix

    def _lock_key(self, name: str) -> str:
        return f"{self.prefix}lock:{name}"

    def _option_key(self, key: str) -> str:
        return f"{self.prefix}option:{key}"

    async def try_acquire(self, name: str) -> bool:
        """Take a lock with SET NX."""
        acquired = await self.client.set(self._lock_key(name), "1", nx=True)
        return bool(acquired)

    async def release(self, name: str) -> None:
        """Delete the lock key."""
        deleted = await self.client.delete(self._lock_key(name))
        if not deleted:
            raise LockNotFoundError(name)

    async def release_if_option(self, name: str, key: str, expected: Any) -> bool:
        """Delete the lock and option in a WATCH/MULTI transaction."""
        option_key = self._option_key(key)
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(option_key)
                current = await pipe.get(option_key)
                if isinstance(current, bytes):
                    current = current.decode()
                if current is None or current != str(expected):
                    await pipe.unwatch()
                    return False

                pipe.multi()
                pipe.delete(self._lock_key(name), option_key)
                await pipe.execute()
            except WatchError:
                logger.debug("Option %s changed while releasing lock %s", key, name)
                return False
        return True

    async def get_option(self, key: str, default: Any = None) -> Any:
        """Read an option value."""
        value = await self.client.get(self._option_key(key))
        if value is None:
            return default
        if isinstance(value, bytes):
            value = value.decode()
        return value

    async def set_option(self, key: str, value: Any, autoload: bool = False) -> None:
        """Write an option value."""
        await self.client.set(self._option_key(key), str(value))

    async def delete_option(self, key: str) -> None:
        """Delete an option value."""
        await self.client.delete(self._option_key(key))


def create_lock_store(config: VaultConfig, redis_client: Optional[Redis] = None) -> LockStore:
    """Create the lock store selected by ``config.lock_backend``."""
    if config.lock_backend == "memory":
        return MemoryLockStore()
    if config.lock_backend == "redis":
        if redis_client is None:
            raise ConfigurationError("A Redis client is required for the redis lock backend")
        return RedisLockStore(redis_client)
    raise ConfigurationError(f"Unknown lock backend: {config.lock_backend}")
