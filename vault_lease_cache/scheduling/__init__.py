"""Refresh scheduling for Vault Lease Cache."""

from .queues import APSchedulerTaskQueue, MemoryTaskQueue, ScheduledJob, TaskQueue
from .scheduler import REFRESH_TASK, RefreshScheduler

__all__ = [
    "APSchedulerTaskQueue",
    "MemoryTaskQueue",
    "ScheduledJob",
    "TaskQueue",
    "REFRESH_TASK",
    "RefreshScheduler",
]
