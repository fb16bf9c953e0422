"""Tests for the catalog stores and caches."""

from __future__ import annotations

import asyncio
import json

import pytest

from mcp_catalog.storage.file_cache import JsonFileCache
from mcp_catalog.storage.memory import MemoryCache, MemoryCatalogStore
from mcp_catalog.storage.sqlite import SqliteCatalogStore


def _record(id: str, popularity: int, source: str = "github", tags=None) -> dict:
    return {
        "id": id,
        "name": id,
        "source": source,
        "popularity": popularity,
        "tags": tags or [],
        "verified": False,
        "created_at": "2026-01-01T00:00:00Z",
    }


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryCatalogStore()
    return SqliteCatalogStore(tmp_path / "catalog.db")


def _seed(store, records):
    async def go():
        for r in records:
            await store.upsert(r["id"], r, r)
    asyncio.run(go())


def test_upsert_creates_then_updates(store):
    created = _record("a/x", 5)
    asyncio.run(store.upsert("a/x", {"popularity": 5}, created))

    later = {**_record("a/x", 9), "created_at": "2030-01-01T00:00:00Z"}
    # Only fields in the update dict change.
    asyncio.run(store.upsert("a/x", {"popularity": 9}, later))
    stored = asyncio.run(store.find_unique("a/x"))

    assert stored["popularity"] == 9
    assert stored["created_at"] == "2026-01-01T00:00:00Z"


def test_find_unique_missing(store):
    assert asyncio.run(store.find_unique("nope")) is None


def test_find_many_orders_and_pages(store):
    _seed(store, [_record("a", 1), _record("b", 30), _record("c", 7)])

    ordered = asyncio.run(store.find_many())
    assert [r["id"] for r in ordered] == ["b", "c", "a"]

    page = asyncio.run(store.find_many(offset=1, limit=1))
    assert [r["id"] for r in page] == ["c"]

    ascending = asyncio.run(store.find_many(descending=False))
    assert [r["id"] for r in ascending] == ["a", "c", "b"]


def test_find_many_filters(store):
    _seed(store, [
        _record("a", 1, tags=["mcp", "weather"]),
        _record("npm:b", 2, source="npm", tags=["mcp"]),
        _record("c", 3, tags=["filesystem"]),
    ])

    assert [r["id"] for r in asyncio.run(store.find_many({"source": "npm"}))] == ["npm:b"]
    assert [r["id"] for r in asyncio.run(store.find_many({"tag": "mcp"}))] == ["npm:b", "a"]
    assert [r["id"] for r in asyncio.run(store.find_many({"verified": False, "tag": "filesystem"}))] == ["c"]
    assert asyncio.run(store.count()) == 3
    assert asyncio.run(store.count({"tag": "mcp"})) == 2


def test_sqlite_rejects_bad_field_names(tmp_path):
    store = SqliteCatalogStore(tmp_path / "catalog.db")
    with pytest.raises(ValueError):
        asyncio.run(store.find_many(order_by="popularity') --"))


def test_sqlite_persists_across_instances(tmp_path):
    path = tmp_path / "catalog.db"
    _seed(SqliteCatalogStore(path), [_record("a/x", 4)])
    assert asyncio.run(SqliteCatalogStore(path).find_unique("a/x"))["popularity"] == 4


# ---------------------------------------------------------------------------
# Caches
# ---------------------------------------------------------------------------


@pytest.fixture(params=["memory", "file"])
def cache(request, tmp_path):
    if request.param == "memory":
        return MemoryCache()
    return JsonFileCache(tmp_path / "cache.json")


def test_cache_roundtrip_and_delete(cache):
    async def scenario():
        await cache.set("repo:acme/x", {"id": "acme/x"}, ttl=60)
        hit = await cache.get("repo:acme/x")
        await cache.delete("repo:acme/x")
        return hit, await cache.get("repo:acme/x")

    hit, after = asyncio.run(scenario())
    assert hit == {"id": "acme/x"}
    assert after is None


def test_cache_expiry(cache):
    async def scenario():
        await cache.set("k", [1, 2], ttl=0.01)
        await asyncio.sleep(0.05)
        return await cache.get("k")

    assert asyncio.run(scenario()) is None


def test_cache_returns_copies(cache):
    async def scenario():
        await cache.set("k", {"tags": ["mcp"]})
        first = await cache.get("k")
        first["tags"].append("mutated")
        return await cache.get("k")

    assert asyncio.run(scenario()) == {"tags": ["mcp"]}


def test_delete_by_pattern(cache):
    async def scenario():
        await cache.set("research:mcp:50:10", [])
        await cache.set("research:files:5:0", [])
        await cache.set("repo:acme/x", {})
        removed = await cache.delete_by_pattern("research:*")
        return removed, await cache.get("repo:acme/x")

    assert asyncio.run(scenario()) == (2, {})


def test_file_cache_survives_reopen_and_bad_file(tmp_path):
    path = tmp_path / "cache.json"
    asyncio.run(JsonFileCache(path).set("k", "v"))
    assert asyncio.run(JsonFileCache(path).get("k")) == "v"
    assert "_expires_at" in json.loads(path.read_text())["k"]

    path.write_text("{not json")
    assert asyncio.run(JsonFileCache(path).get("k")) is None
