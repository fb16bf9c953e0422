"""CLI orchestration — submit → poll → publish, plus one-shot commands."""

from __future__ import annotations

import asyncio
import json
import time

from mcp_catalog import config
from mcp_catalog.aggregation import AggregationService, create_service
from mcp_catalog.output.models import DiscoverOptions, JobStatus
from mcp_catalog.output.writer import write_all
from mcp_catalog.storage.file_cache import JsonFileCache
from mcp_catalog.storage.sqlite import SqliteCatalogStore


def build_service(db_path: str | None = None, cache_path: str | None = None) -> AggregationService:
    return create_service(
        store=SqliteCatalogStore(db_path),
        cache=JsonFileCache(cache_path),
    )


def _banner(title: str) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)


async def run_discovery(
    service: AggregationService,
    options: DiscoverOptions,
    output_dir: str | None = None,
    poll_interval: float = config.JOB_POLL_INTERVAL,
) -> bool:
    """Submit a discovery job, wait for it, and write the results.

    Returns False if the job failed.
    """
    t0 = time.monotonic()

    # Stage 1: Submit
    _banner("STAGE 1: SUBMIT")
    job_id = service.submit_job(options)
    print(f'Submitted job {job_id} for query "{options.effective_query}"')

    # Stage 2: Poll
    print()
    _banner("STAGE 2: DISCOVER")
    last_status: JobStatus | None = None
    while True:
        job = service.get_job_status(job_id)
        if job is None:
            print(f"Job {job_id} expired before completion")
            return False
        if job.status is not last_status:
            print(f"Job {job_id}: {job.status.value}")
            last_status = job.status
        if job.is_terminal:
            break
        await asyncio.sleep(poll_interval)

    if job.status is JobStatus.FAILED:
        print(f"Discovery failed: {job.error}")
        return False
    print(f"Discovered {len(job.results)} servers")

    # Stage 3: Publish
    print()
    _banner("STAGE 3: PUBLISH")
    write_all(job.results, output_dir, query=job.query)

    elapsed = time.monotonic() - t0
    print(f"\nPipeline complete in {elapsed:.1f}s")
    return True


async def run_analyze(service: AggregationService, url: str) -> bool:
    entry = await service.analyze_single(url)
    if entry is None:
        print(f"{url} is not an analyzable MCP server")
        return False
    print(entry.model_dump_json(indent=2))
    return True


async def run_list(service: AggregationService, tag: str | None = None, limit: int = 25) -> None:
    filter = {"tag": tag} if tag else None
    total = await service.count_catalog(filter)
    entries = await service.list_catalog(filter, limit=limit)
    for e in entries:
        print(f"{e.popularity:>8}  {e.id:<50} {e.source.value}")
    print(f"\n{len(entries)} of {total} catalog entries")


def print_status(service: AggregationService) -> None:
    print(json.dumps(service.get_provider_status().model_dump(mode="json"), indent=2))
