"""In-memory registry of discovery jobs.

Jobs live in a plain dict owned by one AggregationService. Terminal jobs
are evicted after a retention window by a fire-and-forget loop timer;
evicting an already-evicted job is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time

from mcp_catalog import config
from mcp_catalog.output.models import DiscoveryJob

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def new_job_id() -> str:
    """``job_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class JobRegistry:
    def __init__(self, retention_seconds: float = config.JOB_RETENTION_SECONDS) -> None:
        self.retention_seconds = retention_seconds
        self._jobs: dict[str, DiscoveryJob] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def put(self, job: DiscoveryJob) -> None:
        self._jobs[job.id] = job

    def get(self, job_id: str) -> DiscoveryJob | None:
        return self._jobs.get(job_id)

    def evict(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        if self._jobs.pop(job_id, None) is not None:
            logger.debug("Evicted job %s", job_id)

    def schedule_eviction(self, job_id: str, delay: float | None = None) -> None:
        """Evict ``job_id`` after ``delay`` seconds (default: retention window).

        Must be called from inside a running event loop. Scheduling twice
        keeps the first timer.
        """
        if job_id in self._timers:
            return
        loop = asyncio.get_running_loop()
        self._timers[job_id] = loop.call_later(
            self.retention_seconds if delay is None else delay, self.evict, job_id
        )
