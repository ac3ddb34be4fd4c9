"""Lease-aware secret cache."""

import hashlib
import logging
from typing import Optional

from pydantic import ValidationError

from ..types import SecretRecord
from .backends import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "vault-lease-cache-"


def cache_key(name: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Derive a fixed-length cache key from a secret name."""
    return f"{prefix}{hashlib.sha256(name.encode()).hexdigest()}"


def ttl_for(record: SecretRecord, margin: int) -> Optional[int]:
    """Compute how long a record may stay cached.

    Entries expire ``margin`` seconds before the lease so that a caller never
    gets a value past its lease. Secrets without a lease never expire.
    """
    if record.lease_duration <= 0:
        return None
    if record.lease_duration <= margin:
        return record.lease_duration
    return record.lease_duration - margin


class SecretCache:
    """Stores the latest record of each secret in a cache backend."""

    def __init__(self, store: CacheStore, prefix: str = DEFAULT_PREFIX):
        self.store = store
        self.prefix = prefix

    def cache_key(self, name: str) -> str:
        """Get the backend key for a secret name."""
        return cache_key(name, self.prefix)

    async def get(self, name: str) -> Optional[SecretRecord]:
        """Get a cached record, or None on a miss."""
        raw = await self.store.get(self.cache_key(name))
        if raw is None:
            return None

        try:
            return SecretRecord.from_bytes(raw)
        except (TypeError, ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable cache entry for %s: %s", name, e)
            return None

    async def put(self, name: str, record: SecretRecord, ttl: Optional[int] = None) -> None:
        """Cache a record, replacing any previous one."""
        await self.store.set(self.cache_key(name), record.to_bytes(), ttl)
        logger.debug("Cached secret %s (ttl: %s)", name, ttl if ttl is not None else "none")

    async def delete(self, name: str) -> None:
        """Drop a cached record."""
        await self.store.delete(self.cache_key(name))
