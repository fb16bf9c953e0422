"""In-memory stand-ins for the GitHub and npm clients."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

from mcp_catalog.collectors.npm import NpmClient
from mcp_catalog.errors import FetchError
from mcp_catalog.output.models import DownloadStats, RateLimitStatus


class FakeGitHub:
    def __init__(
        self,
        repos: dict[str, dict] | None = None,
        files: dict[str, str] | None = None,
        listings: dict[str, list[dict]] | None = None,
        search_items: list[dict] | None = None,
        search_error: Exception | None = None,
    ) -> None:
        self.repos = repos or {}
        self.files = files or {}  # "owner/repo/path" -> content
        self.listings = listings or {}  # "owner/repo" -> entries
        self.search_items = search_items or []
        self.search_error = search_error
        self.calls: list[tuple] = []
        self.remaining = 5000

    async def search_repositories(self, query: str, **kwargs: Any) -> dict:
        self.calls.append(("search", query, kwargs))
        if self.search_error is not None:
            raise self.search_error
        return {
            "total_count": len(self.search_items),
            "incomplete_results": False,
            "items": copy.deepcopy(self.search_items),
        }

    async def get_repository(self, owner: str, repo: str) -> dict:
        self.calls.append(("repo", f"{owner}/{repo}"))
        try:
            return copy.deepcopy(self.repos[f"{owner}/{repo}"])
        except KeyError:
            raise FetchError(f"Failed to fetch repository {owner}/{repo}", target=f"{owner}/{repo}")

    async def get_directory_listing(self, owner: str, repo: str, path: str = "") -> list[dict]:
        self.calls.append(("listing", f"{owner}/{repo}"))
        if f"{owner}/{repo}" not in self.listings:
            raise FetchError(f"Failed to fetch contents {owner}/{repo}/{path}")
        return copy.deepcopy(self.listings[f"{owner}/{repo}"])

    async def download_raw_file(self, owner: str, repo: str, path: str) -> str:
        self.calls.append(("file", f"{owner}/{repo}/{path}"))
        try:
            return self.files[f"{owner}/{repo}/{path}"]
        except KeyError:
            raise FetchError(f"Failed to download file: {owner}/{repo}/{path}")

    def get_rate_limit_status(self) -> RateLimitStatus:
        return RateLimitStatus(
            remaining=self.remaining,
            reset_at=datetime.fromtimestamp(0, tz=timezone.utc),
            is_exhausted=self.remaining <= 0,
        )

    def can_make_request(self) -> bool:
        return self.remaining > 0

    async def aclose(self) -> None:
        pass


class FakeNpm:
    """Serves package documents; helpers are the real NpmClient static methods."""

    get_latest_version = staticmethod(NpmClient.get_latest_version)
    extract_repository_url = staticmethod(NpmClient.extract_repository_url)
    is_recently_maintained = staticmethod(NpmClient.is_recently_maintained)

    def __init__(
        self,
        packages: dict[str, dict] | None = None,
        downloads: dict[str, int] | None = None,
        search_error: Exception | None = None,
    ) -> None:
        self.packages = packages or {}
        self.downloads = downloads or {}
        self.search_error = search_error
        self.calls: list[tuple] = []

    async def search_packages(self, query: str, **kwargs: Any) -> dict:
        self.calls.append(("search", query, kwargs))
        if self.search_error is not None:
            raise self.search_error
        return {
            "total": len(self.packages),
            "objects": [{"package": {"name": name}} for name in self.packages],
        }

    async def get_package_info(self, name: str) -> dict:
        self.calls.append(("info", name))
        try:
            return copy.deepcopy(self.packages[name])
        except KeyError:
            raise FetchError(f"Failed to fetch npm package {name}", target=name)

    async def get_package_version(self, name: str, version: str) -> dict:
        self.calls.append(("version", name, version))
        info = await self.get_package_info(name)
        try:
            return info["versions"][version]
        except KeyError:
            raise FetchError(f"Failed to fetch npm package version {name}@{version}")

    async def get_download_stats(self, name: str, period: str = "last-month") -> DownloadStats:
        self.calls.append(("downloads", name))
        return DownloadStats(
            package=name,
            downloads=self.downloads.get(name, 0),
            period_start="2026-09-01",
            period_end="2026-09-30",
        )

    async def aclose(self) -> None:
        pass


def recent_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def npm_package(
    name: str,
    description: str = "",
    keywords: list[str] | None = None,
    dependencies: dict[str, str] | None = None,
    repository: Any = None,
    modified: str | None = None,
) -> dict:
    """Minimal npm package document with a single 1.0.0 version."""
    version = {
        "name": name,
        "version": "1.0.0",
        "description": description,
        "keywords": keywords or [],
        "dependencies": dependencies or {},
        "license": "MIT",
        "author": {"name": "Ada"},
    }
    doc = {
        "name": name,
        "description": description,
        "dist-tags": {"latest": "1.0.0"},
        "versions": {"1.0.0": version},
        "time": {"modified": modified or recent_iso()},
        "keywords": keywords or [],
    }
    if repository is not None:
        doc["repository"] = repository
    return doc
