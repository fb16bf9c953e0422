"""JSON output writer: produces catalog.json and stats.json."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from statistics import median

from pydantic import BaseModel

from mcp_catalog.config import OUTPUT_DIR
from mcp_catalog.output.models import CatalogEntry, CatalogIndex, CatalogStats, TopEntry

TOP_TAG_COUNT = 20
TOP_ENTRY_COUNT = 25


def write_all(
    entries: list[CatalogEntry],
    output_dir: str | None = None,
    query: str | None = None,
) -> Path:
    out = Path(output_dir or OUTPUT_DIR)
    out.mkdir(parents=True, exist_ok=True)

    now = datetime.now(timezone.utc)

    _write_json(out / "catalog.json", build_index(entries, now, query))
    _write_json(out / "stats.json", build_stats(entries, now))

    print(f"Wrote {len(entries)} servers to {out}/")
    return out


def build_index(
    entries: list[CatalogEntry], now: datetime, query: str | None = None
) -> CatalogIndex:
    return CatalogIndex(
        generated_at=now,
        query=query,
        entry_count=len(entries),
        entries=entries,
    )


def build_stats(entries: list[CatalogEntry], now: datetime) -> CatalogStats:
    popularity = [e.popularity for e in entries]
    sources: Counter[str] = Counter(e.source.value for e in entries)
    tags: Counter[str] = Counter(t for e in entries for t in e.tags)

    # Top servers by popularity
    top = [
        TopEntry(id=e.id, name=e.name, popularity=e.popularity)
        for e in sorted(entries, key=lambda e: e.popularity, reverse=True)[:TOP_ENTRY_COUNT]
    ]

    return CatalogStats(
        generated_at=now,
        entry_count=len(entries),
        by_source=dict(sources.most_common()),
        top_tags=dict(tags.most_common(TOP_TAG_COUNT)),
        total_popularity=sum(popularity),
        median_popularity=int(median(popularity)) if popularity else 0,
        top_entries=top,
    )


def _write_json(path: Path, model: BaseModel) -> None:
    with open(path, "w") as f:
        f.write(model.model_dump_json(indent=2))
