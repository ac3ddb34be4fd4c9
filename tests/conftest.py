"""Shared fixtures for Vault Lease Cache tests."""

import asyncio
import random
from typing import Dict, List

import fakeredis
import fakeredis.aioredis
import pytest

from vault_lease_cache.cache import MemoryCacheStore, SecretCache
from vault_lease_cache.config import VaultConfig
from vault_lease_cache.exceptions import FetchError
from vault_lease_cache.locking import MemoryLockStore, RefreshLock
from vault_lease_cache.manager import SecretManager
from vault_lease_cache.scheduling import MemoryTaskQueue, RefreshScheduler
from vault_lease_cache.types import SecretRecord


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubFetcher:
    """Fetcher double returning canned responses and counting calls."""

    def __init__(self):
        self.responses: Dict[str, List] = {}
        self.calls: List[str] = []

    def add(self, name: str, response) -> None:
        """Queue a SecretRecord or an exception for a secret."""
        self.responses.setdefault(name, []).append(response)

    async def fetch(self, name: str) -> SecretRecord:
        self.calls.append(name)
        # Yield so concurrent refreshes interleave like a real network call
        await asyncio.sleep(0)

        queued = self.responses.get(name)
        if not queued:
            raise FetchError(f"No response queued for {name}", secret=name)
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_record(name: str, lease_duration: int = 3600, lease_id: str = "abc", **data) -> SecretRecord:
    """Build a record the way the fetcher would."""
    return SecretRecord.from_response(name, data, lease_duration=lease_duration, lease_id=lease_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return StubFetcher()


@pytest.fixture
def config():
    return VaultConfig(url="https://vault.example.com:8200", token="s.test-token")


@pytest.fixture
def cache_store(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def lock_store():
    return MemoryLockStore()


@pytest.fixture
def task_queue():
    return MemoryTaskQueue()


@pytest.fixture
def manager(config, fetcher, cache_store, lock_store, task_queue, clock):
    """Secret manager wired with in-memory backends and a fake clock."""
    manager = SecretManager(
        config=config,
        fetcher=fetcher,
        cache=SecretCache(cache_store),
        lock=RefreshLock(lock_store, clock=clock),
        scheduler=RefreshScheduler(task_queue, clock=clock, rng=random.Random(42)),
        clock=clock
    )
    manager.set_up()
    return manager


@pytest.fixture
def redis_client():
    """Create a fakeredis client with its own server.

    Returns:
        fakeredis.aioredis.FakeRedis instance (in-memory Redis emulation)
    """
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture
def record_factory():
    return make_record
