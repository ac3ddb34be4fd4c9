"""Refresh locking for Vault Lease Cache."""

from .backends import LockStore, MemoryLockStore, RedisLockStore, create_lock_store
from .lock import RefreshLock, lock_name

__all__ = ["LockStore", "MemoryLockStore", "RedisLockStore", "create_lock_store", "RefreshLock", "lock_name"]
