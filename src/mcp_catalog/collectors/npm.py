"""npm registry client.

Search, package documents, single-version manifests and download counts.
Download counts are best-effort: a failed stats call yields zero downloads
instead of an error.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, TypedDict
from urllib.parse import quote

import httpx

from mcp_catalog import config
from mcp_catalog.errors import FetchError
from mcp_catalog.output.models import DownloadStats

logger = logging.getLogger(__name__)

# Both the package document and a version manifest are plain JSON objects
# with many optional fields; callers read them with .get().
NpmPackageInfo = dict[str, Any]
NpmPackageVersion = dict[str, Any]


class NpmSearchScore(TypedDict, total=False):
    final: float
    detail: dict[str, float]  # quality / popularity / maintenance


class NpmSearchObject(TypedDict, total=False):
    package: dict[str, Any]
    score: NpmSearchScore
    searchScore: float


class NpmSearchResult(TypedDict):
    total: int
    objects: list[NpmSearchObject]


# github.com/owner/repo in https, git+https, git:// and scp-like forms.
_GITHUB_REPO_RE = re.compile(r"github\.com[/:]([^/]+)/([^/.#]+)")


def _quote_name(name: str) -> str:
    """Escape a package name for a registry path (keeps the scope '@')."""
    return quote(name, safe="@")


class NpmClient:
    """Async client for registry.npmjs.org and the npm downloads API."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = config.REQUEST_TIMEOUT,
    ) -> None:
        self._client = httpx.AsyncClient(
            headers={"Accept": "application/json", "User-Agent": config.USER_AGENT},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NpmClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _get_json(
        self,
        url: str,
        target: str,
        params: dict[str, str | int | float] | None = None,
    ) -> Any:
        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.error("npm API error: GET %s: %s", url, exc)
            raise FetchError(f"Request for npm package {target} failed: {exc}", target=target) from exc

        logger.debug("npm API call: GET %s -> %s", url, resp.status_code)
        if not resp.is_success:
            raise FetchError(
                f"Failed to fetch npm package {target} (status {resp.status_code})",
                target=target,
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(f"Malformed JSON response for {target}", target=target) from exc

    async def search_packages(
        self,
        query: str,
        size: int = 20,
        from_: int = 0,
        quality: float | None = None,
        popularity: float | None = None,
        maintenance: float | None = None,
    ) -> NpmSearchResult:
        params: dict[str, str | int | float] = {"text": query, "size": size, "from": from_}
        # Scoring weights are only sent when the caller sets them.
        for key, value in (
            ("quality", quality),
            ("popularity", popularity),
            ("maintenance", maintenance),
        ):
            if value is not None:
                params[key] = value

        logger.info('Searching npm registry for: "%s"', query)
        data = await self._get_json(
            f"{config.NPM_REGISTRY_BASE}/-/v1/search", f"search '{query}'", params
        )
        logger.info('Found %s npm packages for query: "%s"', data.get("total", 0), query)
        return NpmSearchResult(total=data.get("total", 0), objects=data.get("objects") or [])

    async def get_package_info(self, name: str) -> NpmPackageInfo:
        logger.debug("Fetching npm package info: %s", name)
        return await self._get_json(f"{config.NPM_REGISTRY_BASE}/{_quote_name(name)}", name)

    async def get_package_version(self, name: str, version: str) -> NpmPackageVersion:
        logger.debug("Fetching npm package version: %s@%s", name, version)
        return await self._get_json(
            f"{config.NPM_REGISTRY_BASE}/{_quote_name(name)}/{quote(version)}",
            f"{name}@{version}",
        )

    async def get_download_stats(
        self, name: str, period: str = config.DOWNLOAD_STATS_PERIOD
    ) -> DownloadStats:
        """Download count for a period; zeroed stats if the call fails."""
        logger.debug("Fetching download stats for %s (%s)", name, period)
        try:
            data = await self._get_json(
                f"{config.NPM_DOWNLOADS_BASE}/{period}/{_quote_name(name)}", name
            )
            return DownloadStats(
                package=data.get("package") or name,
                downloads=int(data.get("downloads") or 0),
                period_start=data.get("start", ""),
                period_end=data.get("end", ""),
            )
        except (FetchError, TypeError, ValueError) as exc:
            logger.warning("Error fetching download stats for %s: %s", name, exc)
            now = datetime.now(timezone.utc).isoformat()
            return DownloadStats(package=name, downloads=0, period_start=now, period_end=now)

    @staticmethod
    def get_latest_version(package_info: NpmPackageInfo) -> str:
        return (package_info.get("dist-tags") or {}).get("latest", "")

    @staticmethod
    def extract_repository_url(package_info: NpmPackageInfo) -> str | None:
        """Normalize the declared repository (string or {url}) to a GitHub URL."""
        repository = package_info.get("repository")
        if not repository:
            return None
        if isinstance(repository, dict):
            repository = repository.get("url")
        if not isinstance(repository, str):
            return None

        m = _GITHUB_REPO_RE.search(repository)
        if m is None:
            return None
        return f"https://github.com/{m.group(1)}/{m.group(2)}"

    @staticmethod
    def is_recently_maintained(
        package_info: NpmPackageInfo, now: datetime | None = None
    ) -> bool:
        """True if the package document was modified within the last ~6 months."""
        modified = (package_info.get("time") or {}).get("modified")
        if not modified:
            return False
        try:
            modified_at = datetime.fromisoformat(modified.replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return False
        if modified_at.tzinfo is None:
            modified_at = modified_at.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return modified_at > now - timedelta(days=config.NPM_MAINTAINED_WITHIN_DAYS)
