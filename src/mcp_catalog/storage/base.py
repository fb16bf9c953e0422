"""Abstract capabilities for the catalog datastore and the result cache."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Record = dict[str, Any]
Filter = dict[str, Any]


def matches(record: Record, filter: Filter | None) -> bool:
    """Equality on top-level fields; the ``tag`` key tests tag membership."""
    for field, expected in (filter or {}).items():
        if field == "tag":
            if expected not in (record.get("tags") or []):
                return False
        elif record.get(field) != expected:
            return False
    return True


class CatalogStore(ABC):
    """Persistent catalog of entries keyed by entry id."""

    @abstractmethod
    async def upsert(self, key: str, update: Record, create: Record) -> Record:
        """Insert ``create`` if ``key`` is new, else apply ``update`` to the stored record."""

    @abstractmethod
    async def find_unique(self, key: str) -> Record | None:
        ...

    @abstractmethod
    async def find_many(
        self,
        filter: Filter | None = None,
        offset: int = 0,
        limit: int | None = None,
        order_by: str = "popularity",
        descending: bool = True,
    ) -> list[Record]:
        ...

    @abstractmethod
    async def count(self, filter: Filter | None = None) -> int:
        ...


class Cache(ABC):
    """Key/value cache holding JSON-serializable values with optional TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the number removed."""
