"""Secret caching for Vault Lease Cache."""

from .backends import CacheStore, MemoryCacheStore, RedisCacheStore, create_cache_store
from .store import SecretCache, cache_key, ttl_for

__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "create_cache_store",
    "SecretCache",
    "cache_key",
    "ttl_for",
]
