"""Abstract base for analyzers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from mcp_catalog.output.models import CatalogEntry


class Analyzer(ABC):
    """Base class for source analyzers.

    Each analyzer turns one source identifier (``owner/repo`` or a package
    name) into zero or one CatalogEntry. Analyzers never raise for a bad
    item; they log and return None so one item cannot abort a batch.
    """

    @abstractmethod
    async def analyze(self, identifier: str) -> CatalogEntry | None:
        ...
