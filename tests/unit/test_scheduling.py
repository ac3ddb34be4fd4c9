"""Unit tests for refresh scheduling and task queues."""

import random
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from vault_lease_cache.exceptions import ConfigurationError
from vault_lease_cache.scheduling import (
    REFRESH_TASK,
    APSchedulerTaskQueue,
    MemoryTaskQueue,
    RefreshScheduler,
)


class TestRefreshScheduler:
    """Test fire-time computation and job creation."""

    @pytest.fixture
    def scheduler(self, task_queue, clock):
        task_queue.register(REFRESH_TASK, AsyncMock())
        return RefreshScheduler(task_queue, clock=clock, rng=random.Random(7))

    def test_fire_time_window(self, scheduler, clock):
        """Test a one-hour lease refreshes between 2880s and 2910s from now."""
        for _ in range(200):
            fire_at = scheduler.next_fire_time(3600)
            assert clock.now + 2880 <= fire_at <= clock.now + 2910

    def test_jitter_spreads_fire_times(self, scheduler):
        fire_times = {scheduler.next_fire_time(3600) for _ in range(200)}

        assert len(fire_times) > 1

    @pytest.mark.parametrize("lease_duration", [2, 5, 10, 30, 60, 61, 300, 86400])
    def test_fire_time_inside_lease(self, scheduler, clock, lease_duration):
        """Test refreshes always land after now and before the lease ends."""
        for _ in range(50):
            fire_at = scheduler.next_fire_time(lease_duration)
            assert clock.now < fire_at < clock.now + lease_duration

    @pytest.mark.asyncio
    async def test_schedule(self, scheduler, task_queue, clock):
        await scheduler.schedule("database/creds", clock.now + 100)

        jobs = task_queue.pending(REFRESH_TASK)
        assert len(jobs) == 1
        assert jobs[0].fire_at == clock.now + 100
        assert jobs[0].args == ["database/creds"]

    @pytest.mark.asyncio
    async def test_duplicates_allowed(self, scheduler, task_queue, clock):
        """Test scheduling twice produces two jobs."""
        await scheduler.schedule("database/creds", clock.now + 100)
        await scheduler.schedule("database/creds", clock.now + 100)

        assert len(task_queue.pending(REFRESH_TASK)) == 2

    @pytest.mark.asyncio
    async def test_schedule_next(self, scheduler, task_queue, clock, record_factory):
        fire_at = await scheduler.schedule_next(record_factory("database/creds", lease_duration=3600))

        assert clock.now + 2880 <= fire_at <= clock.now + 2910
        assert task_queue.pending()[0].fire_at == fire_at

    @pytest.mark.asyncio
    async def test_schedule_next_without_lease(self, scheduler, task_queue, clock, record_factory):
        """Test non-leased secrets are polled again within the jitter window."""
        fire_at = await scheduler.schedule_next(record_factory("kv/static", lease_duration=0))

        assert clock.now <= fire_at <= clock.now + 30
        jobs = task_queue.pending(REFRESH_TASK)
        assert len(jobs) == 1
        assert jobs[0].args == ["kv/static"]

    def test_fire_time_without_lease(self, scheduler, clock):
        for _ in range(50):
            fire_at = scheduler.next_fire_time(0)
            assert clock.now <= fire_at <= clock.now + 30


class TestMemoryTaskQueue:
    """Test the in-process task queue."""

    @pytest.mark.asyncio
    async def test_unregistered_task(self, task_queue):
        with pytest.raises(ConfigurationError, match="No handler registered"):
            await task_queue.schedule_once(100.0, "unknown", [])

    @pytest.mark.asyncio
    async def test_run_due(self, task_queue):
        """Test only due jobs run, in fire-time order."""
        calls = []

        async def handler(name):
            calls.append(name)
            return name.upper()

        task_queue.register("task", handler)
        await task_queue.schedule_once(200.0, "task", ["late"])
        await task_queue.schedule_once(100.0, "task", ["early"])
        await task_queue.schedule_once(300.0, "task", ["future"])

        results = await task_queue.run_due(250.0)

        assert calls == ["early", "late"]
        assert results == ["EARLY", "LATE"]
        assert [job.args for job in task_queue.pending()] == [["future"]]

    @pytest.mark.asyncio
    async def test_run_due_sync_handler(self, task_queue):
        handler = Mock(return_value="done")
        task_queue.register("task", handler)
        await task_queue.schedule_once(1.0, "task", ["a", "b"])

        assert await task_queue.run_due(1.0) == ["done"]
        handler.assert_called_once_with("a", "b")


class TestAPSchedulerTaskQueue:
    """Test the APScheduler-backed task queue."""

    @pytest.mark.asyncio
    async def test_schedule_once_adds_date_job(self):
        async def handler(name):
            return name

        queue = APSchedulerTaskQueue(AsyncIOScheduler(timezone=timezone.utc))
        queue.register(REFRESH_TASK, handler)

        await queue.schedule_once(1_900_000_000.0, REFRESH_TASK, ["database/creds"])

        jobs = queue.scheduler.get_jobs()
        assert len(jobs) == 1
        assert isinstance(jobs[0].trigger, DateTrigger)
        assert jobs[0].trigger.run_date == datetime.fromtimestamp(1_900_000_000.0, tz=timezone.utc)
        assert jobs[0].args == ("database/creds",)
        assert jobs[0].func is handler

    @pytest.mark.asyncio
    async def test_unregistered_task(self):
        queue = APSchedulerTaskQueue()

        with pytest.raises(ConfigurationError):
            await queue.schedule_once(1_900_000_000.0, "unknown", [])

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self):
        queue = APSchedulerTaskQueue()

        queue.start()
        assert queue.scheduler.running
        queue.shutdown()
        assert not queue.scheduler.running
