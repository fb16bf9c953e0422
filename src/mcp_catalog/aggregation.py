"""Discovery orchestrator: GitHub + npm -> merge -> rank -> persist -> cache.

Also owns the job registry used by the asynchronous submit/poll form of
discovery.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from mcp_catalog import config
from mcp_catalog.analyzers.package import PackageAnalyzer, analysis_to_entry
from mcp_catalog.analyzers.repository import RepositoryAnalyzer
from mcp_catalog.collectors.github import GitHubClient
from mcp_catalog.collectors.npm import NpmClient
from mcp_catalog.errors import ValidationError
from mcp_catalog.jobs import JobRegistry, new_job_id
from mcp_catalog.output.models import (
    CatalogEntry,
    DiscoverOptions,
    DiscoveryJob,
    ProviderState,
    ProviderStatus,
    SourceKind,
)
from mcp_catalog.storage.base import Cache, CatalogStore, Filter
from mcp_catalog.storage.memory import MemoryCache, MemoryCatalogStore

logger = logging.getLogger(__name__)

_GITHUB_URL_RE = re.compile(r"github\.com/([^/?#]+)/([^/?#]+)")

# Fields a later discovery may overwrite; source, source_url, package_name,
# verified and created_at are fixed when the entry is first stored.
_UPDATABLE_FIELDS = (
    "name",
    "description",
    "version",
    "author",
    "license",
    "tags",
    "readme",
    "tools",
    "resources",
    "prompts",
    "config_template",
    "required_params",
    "optional_params",
    "popularity",
    "updated_at",
    "last_researched_at",
)


def parse_repository_url(url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a GitHub URL or raise ValidationError."""
    m = _GITHUB_URL_RE.search(url or "")
    if m is None:
        raise ValidationError(f"Invalid GitHub repository URL: {url!r}")
    owner, repo = m.group(1), m.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        raise ValidationError(f"Invalid GitHub repository URL: {url!r}")
    return owner, repo


def merge_pair(repo_entry: CatalogEntry, registry_entry: CatalogEntry) -> CatalogEntry:
    """GitHub fields win, except popularity (first non-zero), tags (union) and
    README (the longer one)."""
    readme = (
        registry_entry.readme
        if len(registry_entry.readme) > len(repo_entry.readme)
        else repo_entry.readme
    )
    return repo_entry.model_copy(
        update={
            "popularity": repo_entry.popularity or registry_entry.popularity or 0,
            "tags": list(dict.fromkeys([*repo_entry.tags, *registry_entry.tags])),
            "readme": readme,
        }
    )


def merge_entries(
    repo_entries: list[CatalogEntry], registry_entries: list[CatalogEntry]
) -> list[CatalogEntry]:
    """Deduplicate by id with GitHub-sourced entries taking priority."""
    merged: dict[str, CatalogEntry] = {e.id: e for e in repo_entries}
    for entry in registry_entries:
        existing = merged.get(entry.id)
        if existing is None:
            merged[entry.id] = entry
        elif existing.source is SourceKind.GITHUB and entry.source is SourceKind.NPM:
            merged[entry.id] = merge_pair(existing, entry)
    return list(merged.values())


def rank_entries(entries: list[CatalogEntry], max_results: int) -> list[CatalogEntry]:
    """Most popular first; equal popularity keeps discovery order."""
    return sorted(entries, key=lambda e: e.popularity, reverse=True)[:max_results]


def _discovery_cache_key(options: DiscoverOptions) -> str:
    return (
        f"{config.DISCOVERY_CACHE_PREFIX}:{options.effective_query}:"
        f"{options.max_results}:{options.min_popularity}"
    )


class AggregationService:
    """Runs discovery against GitHub and npm and tracks discovery jobs."""

    def __init__(
        self,
        github: GitHubClient,
        npm: NpmClient,
        store: CatalogStore | None = None,
        cache: Cache | None = None,
        jobs: JobRegistry | None = None,
        repository_analyzer: RepositoryAnalyzer | None = None,
        package_analyzer: PackageAnalyzer | None = None,
    ) -> None:
        self.github = github
        self.npm = npm
        self.store = store if store is not None else MemoryCatalogStore()
        self.cache = cache if cache is not None else MemoryCache()
        self.jobs = jobs if jobs is not None else JobRegistry()
        self.repository_analyzer = repository_analyzer or RepositoryAnalyzer(github)
        self.package_analyzer = package_analyzer or PackageAnalyzer(npm)
        self._tasks: set[asyncio.Task] = set()

    async def aclose(self) -> None:
        await self.github.aclose()
        await self.npm.aclose()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, options: DiscoverOptions | None = None, **kwargs: Any) -> list[CatalogEntry]:
        """Search both sources, merge, rank, persist and cache.

        A failing source degrades to no results from that source; only a
        failing cache call propagates.
        """
        options = options or DiscoverOptions(**kwargs)
        query = options.effective_query
        logger.info('Starting MCP server discovery with query: "%s"', query)

        cache_key = _discovery_cache_key(options)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info('Returning cached results for query: "%s"', query)
            return [CatalogEntry.model_validate(e) for e in cached]

        github_result, npm_result = await asyncio.gather(
            self._search_github(options),
            self._search_npm(options),
            return_exceptions=True,
        )
        github_entries = self._settled("GitHub", github_result)
        npm_entries = self._settled("npm", npm_result)
        logger.info("GitHub search found %d servers", len(github_entries))
        logger.info("npm search found %d servers", len(npm_entries))

        ranked = rank_entries(merge_entries(github_entries, npm_entries), options.max_results)

        await self._save_entries(ranked)
        await self.cache.set(
            cache_key,
            [e.model_dump(mode="json") for e in ranked],
            config.DISCOVERY_CACHE_TTL,
        )
        logger.info("Discovery complete. Found %d unique MCP servers.", len(ranked))
        return ranked

    @staticmethod
    def _settled(source: str, result: list[CatalogEntry] | BaseException) -> list[CatalogEntry]:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error("Error during %s search: %s", source, result)
            return []
        return result

    async def _search_github(self, options: DiscoverOptions) -> list[CatalogEntry]:
        search = await self.github.search_repositories(
            options.effective_query,
            sort="stars",
            order="desc",
            per_page=min(options.max_results * 2, config.GITHUB_SEARCH_MAX_PAGE_SIZE),
        )
        logger.debug("GitHub search returned %d repositories", search["total_count"])

        candidates = []
        for repo in search["items"]:
            stars = repo.get("stargazers_count") or 0
            forks = repo.get("forks_count") or 0
            if stars < options.min_popularity:
                continue
            if not options.include_forks and forks > stars * config.FORK_TO_STAR_RATIO:
                continue
            candidates.append(repo)
        candidates = candidates[: options.max_results]

        names = [repo.get("full_name", "") for repo in candidates]
        results = await asyncio.gather(
            *(self.repository_analyzer.analyze(name) for name in names),
            return_exceptions=True,
        )

        entries: list[CatalogEntry] = []
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning("Failed to analyze GitHub repository %s: %s", name, result)
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                entries.append(result)
        return entries

    async def _search_npm(self, options: DiscoverOptions) -> list[CatalogEntry]:
        search = await self.npm.search_packages(
            options.effective_query,
            size=options.max_results * 2,
            **config.NPM_SEARCH_WEIGHTS,
        )
        logger.debug("npm search returned %d packages", search["total"])

        analyses = await self.package_analyzer.analyze_search_results(search)
        return [
            analysis_to_entry(a)
            for a in analyses
            if a.is_mcp and a.confidence >= config.CONFIDENCE_THRESHOLD
        ]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _save_entry(self, entry: CatalogEntry) -> bool:
        create = entry.model_dump(mode="json")
        update = {k: create[k] for k in _UPDATABLE_FIELDS}
        try:
            await self.store.upsert(entry.id, update, create)
        except Exception as exc:
            logger.warning("Failed to save server %s: %s", entry.id, exc)
            return False
        return True

    async def _save_entries(self, entries: list[CatalogEntry]) -> None:
        logger.info("Saving %d discovered servers to database", len(entries))
        saved = 0
        for entry in entries:
            if await self._save_entry(entry):
                saved += 1
        logger.info("Successfully saved %d/%d discovered servers to database", saved, len(entries))

    # ------------------------------------------------------------------
    # Single repository
    # ------------------------------------------------------------------

    async def analyze_single(self, url: str) -> CatalogEntry | None:
        owner, repo = parse_repository_url(url)
        full_name = f"{owner}/{repo}"
        logger.info("Analyzing specific repository: %s", full_name)

        cache_key = f"{config.ANALYSIS_CACHE_PREFIX}:{full_name}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info("Returning cached analysis for %s", full_name)
            return CatalogEntry.model_validate(cached)

        entry = await self.repository_analyzer.analyze_repository(owner, repo)
        if entry is not None:
            await self.cache.set(
                cache_key, entry.model_dump(mode="json"), config.ANALYSIS_CACHE_TTL
            )
            await self._save_entry(entry)
        return entry

    async def clear_cache(self) -> int:
        removed = 0
        for prefix in (config.DISCOVERY_CACHE_PREFIX, config.ANALYSIS_CACHE_PREFIX):
            removed += await self.cache.delete_by_pattern(f"{prefix}:*")
        logger.info("Cleared %d cached research results", removed)
        return removed

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def submit_job(self, options: DiscoverOptions | None = None) -> str:
        """Register a pending job and start it in the background.

        Returns before any provider call is made. Must be called from
        inside a running event loop.
        """
        options = options or DiscoverOptions()
        job = DiscoveryJob(id=new_job_id(), query=options.effective_query)
        self.jobs.put(job)

        task = asyncio.get_running_loop().create_task(self._run_job(job, options))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info("Started research job: %s", job.id)
        return job.id

    def get_job_status(self, job_id: str) -> DiscoveryJob | None:
        return self.jobs.get(job_id)

    async def _run_job(self, job: DiscoveryJob, options: DiscoverOptions) -> None:
        try:
            job.mark_running()
            logger.info("Running research job: %s", job.id)
            results = await self.discover(options)
            job.mark_completed(results)
            logger.info("Completed research job: %s - Found %d servers", job.id, len(results))
        except Exception as exc:
            if not job.is_terminal:
                job.mark_failed(str(exc) or exc.__class__.__name__)
            logger.error("Failed research job: %s - %s", job.id, exc)
        finally:
            self.jobs.schedule_eviction(job.id)

    # ------------------------------------------------------------------
    # Catalog reads / status
    # ------------------------------------------------------------------

    async def list_catalog(
        self,
        filter: Filter | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[CatalogEntry]:
        records = await self.store.find_many(filter, offset=offset, limit=limit)
        return [CatalogEntry.model_validate(r) for r in records]

    async def count_catalog(self, filter: Filter | None = None) -> int:
        return await self.store.count(filter)

    def get_provider_status(self) -> ProviderStatus:
        return ProviderStatus(
            repository_provider=ProviderState(
                available=self.github.can_make_request(),
                rate_limit=self.github.get_rate_limit_status(),
            ),
            # npm exposes no client-visible rate limit.
            registry_provider=ProviderState(available=True, rate_limit=None),
        )


def create_service(
    store: CatalogStore | None = None,
    cache: Cache | None = None,
) -> AggregationService:
    return AggregationService(GitHubClient(), NpmClient(), store=store, cache=cache)
