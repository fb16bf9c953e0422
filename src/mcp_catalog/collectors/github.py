"""GitHub API client.

Wraps repository search, repository metadata, directory listings and raw
file downloads. Every response updates the client's view of the rate limit
(X-RateLimit-Remaining / X-RateLimit-Reset); that is the only state the
client keeps between calls.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, TypedDict

import httpx

from mcp_catalog import config
from mcp_catalog.errors import FetchError, RateLimitError
from mcp_catalog.output.models import RateLimitStatus

logger = logging.getLogger(__name__)


class GitHubOwner(TypedDict, total=False):
    login: str
    id: int
    avatar_url: str


class GitHubRepo(TypedDict, total=False):
    id: int
    name: str
    full_name: str
    description: str | None
    html_url: str
    clone_url: str
    language: str | None
    stargazers_count: int
    forks_count: int
    updated_at: str
    created_at: str
    owner: GitHubOwner
    topics: list[str]
    license: dict[str, str] | None


class GitHubSearchResponse(TypedDict):
    total_count: int
    incomplete_results: bool
    items: list[GitHubRepo]


class GitHubFile(TypedDict, total=False):
    name: str
    path: str
    sha: str
    size: int
    type: str  # "file" | "dir"
    download_url: str | None


class GitHubClient:
    """Async client for the GitHub REST API with rate-limit bookkeeping."""

    def __init__(
        self,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = config.REQUEST_TIMEOUT,
    ) -> None:
        token = token if token is not None else os.environ.get("GITHUB_TOKEN")
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": config.USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=config.GITHUB_API_BASE,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._rate_remaining: int = config.GITHUB_RATE_LIMIT_PER_HOUR
        self._rate_reset: int = 0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Rate-limit tracking
    # ------------------------------------------------------------------

    def _update_rate_limit(self, response: httpx.Response) -> None:
        """Read X-RateLimit-* headers and track them."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        try:
            if remaining is not None:
                self._rate_remaining = int(remaining)
            if reset is not None:
                self._rate_reset = int(reset)
        except ValueError:
            logger.debug("Ignoring malformed rate-limit headers: %s / %s", remaining, reset)

    def get_rate_limit_status(self) -> RateLimitStatus:
        return RateLimitStatus(
            remaining=self._rate_remaining,
            reset_at=datetime.fromtimestamp(self._rate_reset, tz=timezone.utc),
            is_exhausted=self._rate_remaining <= 0,
        )

    def can_make_request(self) -> bool:
        return self._rate_remaining > 0

    # ------------------------------------------------------------------
    # Low-level API helpers
    # ------------------------------------------------------------------

    async def _get(
        self,
        url: str,
        target: str,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        """GET a GitHub URL, raising FetchError/RateLimitError on failure."""
        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(f"Request for {target} failed: {exc}", target=target) from exc

        self._update_rate_limit(resp)

        if resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0":
            logger.warning("GitHub API rate limit exceeded")
            raise RateLimitError(
                "GitHub API rate limit exceeded. Please try again later or provide a GitHub token.",
                reset_at=self.get_rate_limit_status().reset_at,
            )
        if not resp.is_success:
            raise FetchError(
                f"Failed to fetch {target} (status {resp.status_code})",
                target=target,
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response, target: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(f"Malformed JSON response for {target}", target=target) from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search_repositories(
        self,
        query: str,
        sort: str = "stars",
        order: str = "desc",
        per_page: int = 30,
        page: int = 1,
    ) -> GitHubSearchResponse:
        """Search repositories; the protocol keywords are OR-ed onto the query."""
        params: dict[str, str | int] = {
            "q": f"{query} {config.SEARCH_TERMS}",
            "sort": sort,
            "order": order,
            "per_page": per_page,
            "page": page,
        }
        logger.debug("Searching GitHub for: %s", query)
        resp = await self._get("/search/repositories", f"search '{query}'", params)
        data = self._json(resp, f"search '{query}'")
        logger.info("Found %s repositories for query: %s", data.get("total_count", 0), query)
        return GitHubSearchResponse(
            total_count=data.get("total_count", 0),
            incomplete_results=bool(data.get("incomplete_results", False)),
            items=data.get("items") or [],
        )

    async def get_repository(self, owner: str, repo: str) -> GitHubRepo:
        target = f"{owner}/{repo}"
        logger.debug("Fetching repository: %s", target)
        resp = await self._get(f"/repos/{owner}/{repo}", target)
        return self._json(resp, target)

    async def get_directory_listing(
        self, owner: str, repo: str, path: str = ""
    ) -> list[GitHubFile]:
        target = f"{owner}/{repo}/{path}"
        logger.debug("Fetching contents: %s", target)
        resp = await self._get(f"/repos/{owner}/{repo}/contents/{path}", target)
        data = self._json(resp, target)
        # A file path returns a single object rather than a listing.
        return data if isinstance(data, list) else [data]

    async def download_raw_file(self, owner: str, repo: str, path: str) -> str:
        """Download a file from the primary branch, falling back to the secondary once."""
        target = f"{owner}/{repo}/{path}"
        primary, secondary = config.GITHUB_BRANCHES
        try:
            resp = await self._get(
                f"{config.GITHUB_RAW_BASE}/{owner}/{repo}/{primary}/{path}", target
            )
            return resp.text
        except RateLimitError:
            raise
        except FetchError:
            logger.debug("%s not found on %s, trying %s", target, primary, secondary)

        try:
            resp = await self._get(
                f"{config.GITHUB_RAW_BASE}/{owner}/{repo}/{secondary}/{path}", target
            )
        except RateLimitError:
            raise
        except FetchError as exc:
            raise FetchError(f"Failed to download file: {target}", target=target) from exc
        return resp.text
