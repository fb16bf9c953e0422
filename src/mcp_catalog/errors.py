"""Exception hierarchy for provider calls and caller input."""

from __future__ import annotations

from datetime import datetime


class CatalogError(Exception):
    """Base exception for all catalog errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class FetchError(CatalogError):
    """A call to an external provider failed.

    ``target`` names what was being fetched (``owner/repo``, a package
    name, or a URL) so log lines stay actionable.
    """

    def __init__(
        self,
        message: str,
        target: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.target = target
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(FetchError):
    """GitHub reported an exhausted rate limit (403 with zero remaining)."""

    def __init__(self, message: str, reset_at: datetime | None = None) -> None:
        self.reset_at = reset_at
        super().__init__(message, status_code=403)


class ValidationError(CatalogError):
    """Caller-supplied input failed a precondition; raised before any I/O."""
