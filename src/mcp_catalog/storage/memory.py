"""In-process CatalogStore and Cache, used by tests and one-shot CLI runs."""

from __future__ import annotations

import copy
import fnmatch
import json
import time
from typing import Any

from mcp_catalog.storage.base import Cache, CatalogStore, Filter, Record, matches


class MemoryCatalogStore(CatalogStore):
    def __init__(self) -> None:
        self._records: dict[str, Record] = {}

    async def upsert(self, key: str, update: Record, create: Record) -> Record:
        existing = self._records.get(key)
        if existing is None:
            record = {**copy.deepcopy(create), "id": key}
        else:
            record = {**existing, **copy.deepcopy(update)}
        self._records[key] = record
        return copy.deepcopy(record)

    async def find_unique(self, key: str) -> Record | None:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    async def find_many(
        self,
        filter: Filter | None = None,
        offset: int = 0,
        limit: int | None = None,
        order_by: str = "popularity",
        descending: bool = True,
    ) -> list[Record]:
        found = [r for r in self._records.values() if matches(r, filter)]
        found.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by) or 0), reverse=descending)
        end = offset + limit if limit is not None else None
        return copy.deepcopy(found[offset:end])

    async def count(self, filter: Filter | None = None) -> int:
        return sum(1 for r in self._records.values() if matches(r, filter))


class MemoryCache(Cache):
    """Values are stored JSON-encoded, so reads never alias cached objects."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> str | None:
        item = self._entries.get(key)
        if item is None:
            return None
        raw, expires_at = item
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return raw

    async def get(self, key: str) -> Any | None:
        raw = self._live(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._entries[key] = (json.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_by_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for k in doomed:
            del self._entries[k]
        return len(doomed)
