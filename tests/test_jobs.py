"""Tests for the job registry and job state transitions."""

from __future__ import annotations

import asyncio
import re

import pytest

from mcp_catalog.jobs import JobRegistry, new_job_id
from mcp_catalog.output.models import DiscoveryJob, JobStatus


def test_job_id_format():
    job_id = new_job_id()
    assert re.fullmatch(r"job_\d{13}_[0-9a-z]{9}", job_id)
    assert new_job_id() != job_id


def test_put_get_evict():
    jobs = JobRegistry()
    job = DiscoveryJob(id="job_1_abc", query="mcp")
    jobs.put(job)

    assert jobs.get("job_1_abc") is job
    assert len(jobs) == 1
    jobs.evict("job_1_abc")
    assert jobs.get("job_1_abc") is None
    # Evicting twice is harmless.
    jobs.evict("job_1_abc")
    assert len(jobs) == 0


def test_scheduled_eviction_fires():
    jobs = JobRegistry(retention_seconds=0.01)
    jobs.put(DiscoveryJob(id="j", query="mcp"))

    async def scenario():
        jobs.schedule_eviction("j")
        assert jobs.get("j") is not None
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert jobs.get("j") is None


def test_schedule_eviction_keeps_first_timer():
    jobs = JobRegistry()
    jobs.put(DiscoveryJob(id="j", query="mcp"))

    async def scenario():
        jobs.schedule_eviction("j", delay=0.01)
        jobs.schedule_eviction("j", delay=60)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert jobs.get("j") is None


def test_job_moves_forward_only():
    job = DiscoveryJob(id="j", query="mcp")
    assert job.status is JobStatus.PENDING
    assert not job.is_terminal

    job.mark_running()
    job.mark_completed([])
    assert job.status is JobStatus.COMPLETED
    assert job.is_terminal
    assert job.completed_at is not None

    with pytest.raises(ValueError):
        job.mark_failed("late")
    with pytest.raises(ValueError):
        job.mark_running()


def test_job_cannot_complete_before_running():
    job = DiscoveryJob(id="j", query="mcp")
    with pytest.raises(ValueError):
        job.mark_completed([])


def test_failed_job_keeps_error():
    job = DiscoveryJob(id="j", query="mcp")
    job.mark_running()
    job.mark_failed("GitHub API rate limit exceeded")
    assert job.status is JobStatus.FAILED
    assert job.error == "GitHub API rate limit exceeded"
    assert job.results == []
