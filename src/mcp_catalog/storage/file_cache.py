"""JSON-file Cache that survives between CLI runs.

Each key maps to {"value": ..., "_expires_at": epoch seconds or null}.
Expired entries are dropped lazily on read and on every write.
"""

from __future__ import annotations

import fnmatch
import json
import time
from pathlib import Path
from typing import Any

from mcp_catalog import config
from mcp_catalog.storage.base import Cache


class JsonFileCache(Cache):
    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or config.CACHE_FILE)

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        now = time.time()
        live = {k: v for k, v in entries.items() if not _is_expired(v, now)}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(live, f, separators=(",", ":"))

    async def get(self, key: str) -> Any | None:
        entry = self._load().get(key)
        if entry is None or _is_expired(entry, time.time()):
            return None
        return entry.get("value")

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        entries = self._load()
        entries[key] = {
            "value": value,
            "_expires_at": time.time() + ttl if ttl else None,
        }
        self._save(entries)

    async def delete(self, key: str) -> None:
        entries = self._load()
        if entries.pop(key, None) is not None:
            self._save(entries)

    async def delete_by_pattern(self, pattern: str) -> int:
        entries = self._load()
        doomed = [k for k in entries if fnmatch.fnmatchcase(k, pattern)]
        for k in doomed:
            del entries[k]
        if doomed:
            self._save(entries)
        return len(doomed)


def _is_expired(entry: dict[str, Any], now: float) -> bool:
    expires_at = entry.get("_expires_at")
    return expires_at is not None and now >= expires_at
