"""Key-value backends for the secret cache."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..config import VaultConfig
from ..exceptions import CacheStoreError, ConfigurationError

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Abstract key-value store with optional per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Get a value, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        """Store a value. A ``ttl`` of None means the entry never expires."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value if present."""
        pass


class MemoryCacheStore(CacheStore):
    """Process-local cache store for development and testing."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[bytes, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        """Get a value, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        """Store a value with an optional TTL."""
        expires_at = self._clock() + ttl if ttl is not None else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        """Remove a value if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore(CacheStore):
    """Redis-backed cache store shared between processes."""

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> Optional[bytes]:
        """Get a value from Redis."""
        try:
            value = await self.client.get(key)
        except RedisError as e:
            logger.error("Redis GET failed for key %s: %s", key, e)
            raise CacheStoreError(f"Failed to get cache key: {key}") from e

        if isinstance(value, str):
            value = value.encode()
        return value

    async def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        """Store a value in Redis with an optional TTL."""
        try:
            if ttl is None:
                await self.client.set(key, value)
            else:
                # Redis rejects a zero expiry
                await self.client.set(key, value, ex=max(int(ttl), 1))
        except RedisError as e:
            logger.error("Redis SET failed for key %s: %s", key, e)
            raise CacheStoreError(f"Failed to set cache key: {key}") from e

    async def delete(self, key: str) -> None:
        """Delete a value from Redis."""
        try:
            await self.client.delete(key)
        except RedisError as e:
            logger.error("Redis DELETE failed for key %s: %s", key, e)
            raise CacheStoreError(f"Failed to delete cache key: {key}") from e


def create_cache_store(config: VaultConfig, redis_client: Optional[Redis] = None) -> CacheStore:
    """Create the cache store selected by ``config.cache_backend``."""
    if config.cache_backend == "memory":
        return MemoryCacheStore()
    if config.cache_backend == "redis":
        if redis_client is None:
            raise ConfigurationError("A Redis client is required for the redis cache backend")
        return RedisCacheStore(redis_client)
    raise ConfigurationError(f"Unknown cache backend: {config.cache_backend}")
