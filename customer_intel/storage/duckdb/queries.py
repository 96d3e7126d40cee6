"""
DuckDB Query Layer

SQL reads over the Parquet datasets of the entity store.
"""

import asyncio
import threading
from pathlib import Path
from typing import Any, Mapping

import duckdb


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class DuckDBQueries:
    """
    DuckDB query layer for the entity store's Parquet datasets.

    Each collection is a dataset directory ``<collection>.parquet/`` of
    immutable part files; links live in ``links.parquet/``.

    Thread safety:
        Uses thread-local storage for connections since DuckDB connections
        are not thread-safe and asyncio.to_thread() may use different threads.

    The blocking ``*_sync`` methods are called by the Parquet backend from
    inside its file lock; everything else is async.
    """

    LINKS = "links"

    def __init__(self, store_path: Path):
        self.store_path = store_path
        self._local = threading.local()
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize DuckDB (marks as ready, connections created per-thread)."""
        self._initialized = True

    async def close(self) -> None:
        """Close the current thread's connection."""
        self._initialized = False
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def _get_conn(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local DuckDB connection, creating if needed."""
        if not self._initialized:
            raise RuntimeError("DuckDB not initialized. Call initialize() first.")

        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = duckdb.connect()
            self._local.conn = conn
        return conn

    def _source(self, dataset: str) -> str | None:
        """read_parquet() expression for a dataset, or None while it has no parts."""
        path = self.store_path / f"{dataset}.parquet"
        if not path.is_dir() or not any(path.glob("part-*.parquet")):
            return None
        pattern = str(path / "part-*.parquet").replace("'", "''")
        return f"read_parquet('{pattern}', union_by_name = true)"

    def _fetch(self, dataset: str, sql: str, params: list[Any]) -> list[tuple[Any, ...]]:
        source = self._source(dataset)
        if source is None:
            return []
        conn = self._get_conn()
        try:
            return conn.execute(sql.format(source=source), params).fetchall()
        except duckdb.CatalogException:
            return []

    # -------------------------------------------------------------------------
    # Blocking helpers (run inside the backend's write lock)
    # -------------------------------------------------------------------------

    def record_exists_sync(self, collection: str, entity_id: str) -> bool:
        rows = self._fetch(collection, "SELECT 1 FROM {source} WHERE uuid = ? LIMIT 1", [entity_id])
        return bool(rows)

    def link_exists_sync(self, link_id: str) -> bool:
        rows = self._fetch(self.LINKS, "SELECT 1 FROM {source} WHERE id = ? LIMIT 1", [link_id])
        return bool(rows)

    # -------------------------------------------------------------------------
    # Entity Operations
    # -------------------------------------------------------------------------

    async def get_payload(self, collection: str, entity_id: str) -> str | None:
        """JSON payload of an entity by id."""
        def _query() -> str | None:
            rows = self._fetch(
                collection,
                "SELECT payload FROM {source} WHERE uuid = ? LIMIT 1",
                [entity_id],
            )
            return rows[0][0] if rows else None

        return await asyncio.to_thread(_query)

    async def get_payloads(self, collection: str, entity_ids: list[str]) -> dict[str, str]:
        """Payloads for several ids, keyed by id."""
        if not entity_ids:
            return {}

        def _query() -> dict[str, str]:
            placeholders = ", ".join("?" for _ in entity_ids)
            rows = self._fetch(
                collection,
                f"SELECT uuid, payload FROM {{source}} WHERE uuid IN ({placeholders})",
                list(entity_ids),
            )
            return {row[0]: row[1] for row in rows}

        return await asyncio.to_thread(_query)

    async def find_payloads(
        self,
        collection: str,
        where: Mapping[str, Any] | None,
        limit: int,
    ) -> list[str]:
        """Payloads whose filter columns equal the given values, oldest first."""
        def _query() -> list[str]:
            clauses: list[str] = []
            params: list[Any] = []
            for name, value in (where or {}).items():
                clauses.append(f"{_quote_identifier(name)} = ?")
                params.append(str(value))
            where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
            rows = self._fetch(
                collection,
                f"SELECT payload FROM {{source}} {where_sql} ORDER BY created_at LIMIT {int(limit)}",
                params,
            )
            return [row[0] for row in rows]

        return await asyncio.to_thread(_query)

    async def count(self, collection: str) -> int:
        def _query() -> int:
            rows = self._fetch(collection, "SELECT COUNT(*) FROM {source}", [])
            return int(rows[0][0]) if rows else 0

        return await asyncio.to_thread(_query)

    # -------------------------------------------------------------------------
    # Link Operations
    # -------------------------------------------------------------------------

    async def links_from(self, collection: str, from_id: str, relation: str) -> list[str]:
        def _query() -> list[str]:
            rows = self._fetch(
                self.LINKS,
                "SELECT to_uuid FROM {source} "
                "WHERE collection = ? AND from_uuid = ? AND rel_type = ? "
                "ORDER BY to_uuid",
                [collection, from_id, relation],
            )
            return [row[0] for row in rows]

        return await asyncio.to_thread(_query)
