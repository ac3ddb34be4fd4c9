"""Deferred one-shot task queues used to run refreshes."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TaskHandler = Callable[..., Any]


@dataclass
class ScheduledJob:
    """A task waiting to run."""

    fire_at: float
    task_name: str
    args: List[Any] = field(default_factory=list)


class TaskQueue(ABC):
    """Runs registered tasks once at a given time."""

    def __init__(self):
        self._handlers: Dict[str, TaskHandler] = {}

    def register(self, task_name: str, handler: TaskHandler) -> None:
        """Register the handler invoked for a task name."""
        self._handlers[task_name] = handler

    def handler_for(self, task_name: str) -> TaskHandler:
        """Get the handler registered for a task name."""
        try:
            return self._handlers[task_name]
        except KeyError:
            raise ConfigurationError(f"No handler registered for task: {task_name}")

    @abstractmethod
    async def schedule_once(self, fire_at: float, task_name: str, args: Sequence[Any]) -> None:
        """Run a task once, at or after ``fire_at`` (epoch seconds)."""
        pass


class MemoryTaskQueue(TaskQueue):
    """In-process queue whose jobs run when ``run_due`` is called.

    Suited to tests and to hosts that drive refreshes from their own loop.
    """

    def __init__(self):
        super().__init__()
        self.jobs: List[ScheduledJob] = []

    async def schedule_once(self, fire_at: float, task_name: str, args: Sequence[Any]) -> None:
        """Queue a job."""
        self.handler_for(task_name)
        self.jobs.append(ScheduledJob(fire_at=fire_at, task_name=task_name, args=list(args)))

    def pending(self, task_name: Optional[str] = None) -> List[ScheduledJob]:
        """List queued jobs, optionally for one task name."""
        return [job for job in self.jobs if task_name is None or job.task_name == task_name]

    async def run_due(self, now: float) -> List[Any]:
        """Run every job due at ``now`` and return their results."""
        due = sorted((job for job in self.jobs if job.fire_at <= now), key=lambda job: job.fire_at)
        self.jobs = [job for job in self.jobs if job.fire_at > now]

        results = []
        for job in due:
            result = self.handler_for(job.task_name)(*job.args)
            if asyncio.iscoroutine(result):
                result = await result
            results.append(result)
        return results


class APSchedulerTaskQueue(TaskQueue):
    """Task queue backed by an APScheduler ``AsyncIOScheduler``."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, misfire_grace_time: int = 300):
        super().__init__()
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.misfire_grace_time = misfire_grace_time

    async def schedule_once(self, fire_at: float, task_name: str, args: Sequence[Any]) -> None:
        """Add a date-triggered job."""
        handler = self.handler_for(task_name)
        run_date = datetime.fromtimestamp(fire_at, tz=timezone.utc)

        self.scheduler.add_job(
            handler,
            trigger=DateTrigger(run_date=run_date),
            args=list(args),
            name=task_name,
            misfire_grace_time=self.misfire_grace_time,
        )
        logger.debug("Scheduled %s%s at %s", task_name, list(args), run_date.isoformat())

    def start(self) -> None:
        """Start the underlying scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        """Stop the underlying scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
