"""SQLite-backed CatalogStore.

Each entry is one row: the id plus the full record as a JSON document.
Filtering and ordering use SQLite's JSON functions. Blocking sqlite3 calls
run in a worker thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import sqlite3
from pathlib import Path

from mcp_catalog import config
from mcp_catalog.storage.base import CatalogStore, Filter, Record

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SCHEMA = """
CREATE TABLE IF NOT EXISTS catalog_entries (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL
)
"""


def _field(name: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValueError(f"Invalid field name: {name!r}")
    return name


def _where(filter: Filter | None) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    for field, expected in (filter or {}).items():
        if field == "tag":
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(data, '$.tags') WHERE value = ?)"
            )
            params.append(expected)
        else:
            clauses.append(f"json_extract(data, '$.{_field(field)}') = ?")
            params.append(int(expected) if isinstance(expected, bool) else expected)
    sql = " WHERE " + " AND ".join(clauses) if clauses else ""
    return sql, params


class SqliteCatalogStore(CatalogStore):
    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(
            db_path or os.environ.get("MCP_CATALOG_DB") or config.CATALOG_DB_FILE
        )
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.execute(SCHEMA)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _upsert_sync(self, key: str, update: Record, create: Record) -> Record:
        conn = self._connect()
        try:
            with conn:
                row = conn.execute(
                    "SELECT data FROM catalog_entries WHERE id = ?", (key,)
                ).fetchone()
                if row is None:
                    record = {**create, "id": key}
                else:
                    record = {**json.loads(row["data"]), **update}
                conn.execute(
                    "INSERT INTO catalog_entries (id, data) VALUES (?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET data = excluded.data",
                    (key, json.dumps(record)),
                )
            return record
        finally:
            conn.close()

    def _find_unique_sync(self, key: str) -> Record | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM catalog_entries WHERE id = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        return json.loads(row["data"]) if row is not None else None

    def _find_many_sync(
        self,
        filter: Filter | None,
        offset: int,
        limit: int | None,
        order_by: str,
        descending: bool,
    ) -> list[Record]:
        where, params = _where(filter)
        direction = "DESC" if descending else "ASC"
        sql = (
            f"SELECT data FROM catalog_entries{where} "
            f"ORDER BY json_extract(data, '$.{_field(order_by)}') {direction}, id ASC "
            "LIMIT ? OFFSET ?"
        )
        params.extend([limit if limit is not None else -1, offset])
        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [json.loads(r["data"]) for r in rows]

    def _count_sync(self, filter: Filter | None) -> int:
        where, params = _where(filter)
        conn = self._connect()
        try:
            row = conn.execute(f"SELECT COUNT(*) FROM catalog_entries{where}", params).fetchone()
        finally:
            conn.close()
        return int(row[0])

    # ------------------------------------------------------------------
    # CatalogStore
    # ------------------------------------------------------------------

    async def upsert(self, key: str, update: Record, create: Record) -> Record:
        return await asyncio.to_thread(self._upsert_sync, key, update, create)

    async def find_unique(self, key: str) -> Record | None:
        return await asyncio.to_thread(self._find_unique_sync, key)

    async def find_many(
        self,
        filter: Filter | None = None,
        offset: int = 0,
        limit: int | None = None,
        order_by: str = "popularity",
        descending: bool = True,
    ) -> list[Record]:
        return await asyncio.to_thread(
            self._find_many_sync, filter, offset, limit, order_by, descending
        )

    async def count(self, filter: Filter | None = None) -> int:
        return await asyncio.to_thread(self._count_sync, filter)
