"""Schedules secret refreshes ahead of lease expiry."""

import logging
import random
import time
from typing import Callable, Optional

from ..metrics import record_refresh_scheduled
from ..types import SecretRecord
from .queues import TaskQueue

logger = logging.getLogger(__name__)

REFRESH_TASK = "vault-lease-cache/update_secret"

# Refresh once this share of the lease has elapsed
LEASE_FRACTION = 0.8
MAX_JITTER_SECONDS = 30


class RefreshScheduler:
    """Arms one-shot refresh jobs on a task queue.

    Nothing prevents two jobs for the same secret; the refresh lock makes
    duplicate firings harmless.
    """

    def __init__(
        self,
        queue: TaskQueue,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None
    ):
        self.queue = queue
        self._clock = clock
        self._rng = rng or random.Random()

    def next_fire_time(self, lease_duration: int) -> float:
        """Compute when to refresh a secret with the given lease.

        Secrets without a lease may still change in Vault, so they are polled
        again within ``MAX_JITTER_SECONDS``.
        """
        if lease_duration <= 0:
            return self._clock() + self._rng.randint(0, MAX_JITTER_SECONDS)

        delay = max(min(round(lease_duration * LEASE_FRACTION), lease_duration - 1), 1)

        # Jitter keeps secrets with equal leases from refreshing together,
        # but must not push short leases to or past their expiry
        max_jitter = max(min(MAX_JITTER_SECONDS, lease_duration - delay - 1), 0)
        return self._clock() + delay + self._rng.randint(0, max_jitter)

    async def schedule(self, name: str, fire_at: float) -> None:
        """Queue a refresh of a secret at ``fire_at``."""
        await self.queue.schedule_once(fire_at, REFRESH_TASK, [name])
        record_refresh_scheduled()
        logger.debug("Next refresh of %s in %.0fs", name, fire_at - self._clock())

    async def schedule_next(self, record: SecretRecord) -> float:
        """Schedule the refresh that follows a successful fetch."""
        fire_at = self.next_fire_time(record.lease_duration)
        await self.schedule(record.name, fire_at)
        return fire_at
