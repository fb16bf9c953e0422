"""Pydantic models for catalog entries, discovery jobs, and provider status."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from mcp_catalog import config


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transport(str, Enum):
    STDIO = "stdio"
    SSE = "sse"


class ParamType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    PATH = "path"
    SECRET = "secret"


class SourceKind(str, Enum):
    GITHUB = "github"
    NPM = "npm"
    MANUAL = "manual"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LaunchTemplate(BaseModel):
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    transport: Transport = Transport.STDIO


class ParamSpec(BaseModel):
    key: str
    type: ParamType = ParamType.STRING
    description: str = ""
    default: str | None = None


class CatalogEntry(BaseModel):
    """A discovered server, normalized across GitHub and npm.

    ``id`` is the dedup key: ``owner/repo`` for GitHub, ``npm:<name>`` for
    npm. Tool/resource/prompt schemas are passed through untouched.
    """

    id: str
    name: str
    description: str = ""
    version: str = "latest"
    author: str = "Unknown"
    license: str = ""
    tags: list[str] = Field(default_factory=list)
    readme: str = ""
    tools: list[Any] = Field(default_factory=list)
    resources: list[Any] = Field(default_factory=list)
    prompts: list[Any] = Field(default_factory=list)
    config_template: LaunchTemplate
    required_params: list[ParamSpec] = Field(default_factory=list)
    optional_params: list[ParamSpec] = Field(default_factory=list)
    source: SourceKind
    source_url: str
    package_name: str | None = None
    popularity: int = Field(default=0, ge=0)
    verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_researched_at: datetime = Field(default_factory=utcnow)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        # Set semantics, first-seen order kept so output is stable.
        return list(dict.fromkeys(tags))


class DiscoverOptions(BaseModel):
    query: str | None = None
    max_results: int = Field(default=config.DEFAULT_MAX_RESULTS, ge=1)
    min_popularity: int = Field(default=config.DEFAULT_MIN_POPULARITY, ge=0)
    include_forks: bool = False

    @property
    def effective_query(self) -> str:
        return self.query or config.DEFAULT_QUERY


class DiscoveryJob(BaseModel):
    """One asynchronous discovery request.

    Status only moves forward: pending -> running -> completed | failed.
    """

    id: str
    status: JobStatus = JobStatus.PENDING
    query: str
    results: list[CatalogEntry] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def mark_running(self) -> None:
        if self.status is not JobStatus.PENDING:
            raise ValueError(f"job {self.id} cannot start from {self.status.value}")
        self.status = JobStatus.RUNNING

    def mark_completed(self, results: list[CatalogEntry]) -> None:
        if self.status is not JobStatus.RUNNING:
            raise ValueError(f"job {self.id} cannot complete from {self.status.value}")
        self.status = JobStatus.COMPLETED
        self.results = results
        self.completed_at = utcnow()

    def mark_failed(self, error: str) -> None:
        if self.status is not JobStatus.RUNNING:
            raise ValueError(f"job {self.id} cannot fail from {self.status.value}")
        self.status = JobStatus.FAILED
        self.error = error
        self.completed_at = utcnow()


class PackageMetadata(BaseModel):
    description: str | None = None
    version: str = "unknown"
    author: str | None = None
    license: str | None = None
    keywords: list[str] = Field(default_factory=list)
    homepage: str | None = None
    downloads: int = 0
    is_recent: bool = False


class PackageAnalysis(BaseModel):
    package_name: str
    is_mcp: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    indicators: list[str] = Field(default_factory=list)
    repository_url: str | None = None
    metadata: PackageMetadata = Field(default_factory=PackageMetadata)


class RateLimitStatus(BaseModel):
    remaining: int
    reset_at: datetime
    is_exhausted: bool


class DownloadStats(BaseModel):
    package: str
    downloads: int = 0
    period_start: str
    period_end: str


class ProviderState(BaseModel):
    available: bool
    rate_limit: RateLimitStatus | None = None


class ProviderStatus(BaseModel):
    repository_provider: ProviderState
    registry_provider: ProviderState


class CatalogIndex(BaseModel):
    version: str = "0.1.0"
    generated_at: datetime
    query: str | None = None
    entry_count: int
    entries: list[CatalogEntry]


class TopEntry(BaseModel):
    id: str
    name: str
    popularity: int


class CatalogStats(BaseModel):
    version: str = "0.1.0"
    generated_at: datetime
    entry_count: int
    by_source: dict[str, int]
    top_tags: dict[str, int]
    total_popularity: int
    median_popularity: int
    top_entries: list[TopEntry]
