"""
LanceDB Vector Indices

One table per (collection, vector slot), named ``<collection>__<slot>``.
"""

import asyncio
import threading
from pathlib import Path
from typing import Any, Mapping

import lancedb


class LanceDBIndices:
    """
    Manages LanceDB vector tables for similarity search.

    Rows hold the entity uuid, the collection's filterable properties and
    the vector. Searches use cosine distance; scores are returned as
    similarity (1 - distance).

    Thread safety:
        Uses thread-local storage for connections since LanceDB connections
        may not be thread-safe and asyncio.to_thread() may use different threads.
    """

    @staticmethod
    def _escape_sql_string(value: str) -> str:
        """Escape single quotes for SQL WHERE clauses."""
        return value.replace("'", "''")

    @staticmethod
    def table_name(collection: str, slot: str) -> str:
        return f"{collection}__{slot}"

    def __init__(self, lancedb_path: Path):
        self.path = lancedb_path
        self._local = threading.local()
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize LanceDB (marks as ready, connections created per-thread)."""
        if self._initialized:
            return

        def _init() -> None:
            self.path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(_init)
        self._initialized = True

    async def close(self) -> None:
        """Close LanceDB connections."""
        self._initialized = False
        if hasattr(self._local, "db"):
            self._local.db = None

    def _get_db(self) -> lancedb.DBConnection:
        """Get thread-local LanceDB connection, creating if needed."""
        if not self._initialized:
            raise RuntimeError("LanceDB not initialized. Call initialize() first.")

        db = getattr(self._local, "db", None)
        if db is None:
            db = lancedb.connect(str(self.path))
            self._local.db = db
        return db

    @staticmethod
    def _table_names(db: lancedb.DBConnection) -> set[str]:
        """
        Return table names across LanceDB API variants.

        Recent LanceDB returns a response object from list_tables() with a
        `tables` attribute, while older versions return a plain list.
        """
        listed = db.list_tables()
        tables = getattr(listed, "tables", listed)
        return {str(name) for name in tables}

    def _has_table(self, db: lancedb.DBConnection, table_name: str) -> bool:
        """Check table existence in a LanceDB-version-safe way."""
        return table_name in self._table_names(db)

    def upsert_sync(
        self,
        collection: str,
        slot: str,
        entity_id: str,
        properties: Mapping[str, str],
        vector: list[float],
    ) -> None:
        """
        Write one entity vector to a slot table, replacing any earlier row
        for the same uuid.

        Synchronous so the caller can run it while holding the store lock.
        """
        table_name = self.table_name(collection, slot)
        db = self._get_db()
        data = [{"uuid": entity_id, **properties, "vector": [float(v) for v in vector]}]
        if not self._has_table(db, table_name):
            db.create_table(table_name, data)
            return
        table = db.open_table(table_name)
        table.delete(f"uuid = '{self._escape_sql_string(entity_id)}'")
        table.add(data)

    async def search(
        self,
        collection: str,
        slot: str,
        query_vector: list[float],
        limit: int = 10,
        where: Mapping[str, Any] | None = None,
    ) -> list[tuple[str, float]]:
        """
        Search one slot table by vector similarity.

        Returns list of (uuid, similarity) tuples, best first.
        """
        table_name = self.table_name(collection, slot)

        def _search() -> list[tuple[str, float]]:
            db = self._get_db()
            if not self._has_table(db, table_name):
                return []

            query = db.open_table(table_name).search(query_vector).metric("cosine")
            if where:
                clause = " AND ".join(
                    f"{name} = '{self._escape_sql_string(str(value))}'"
                    for name, value in where.items()
                )
                query = query.where(clause, prefilter=True)
            results = query.limit(limit).to_arrow()

            output: list[tuple[str, float]] = []
            for i in range(results.num_rows):
                distance = results.column("_distance")[i].as_py()
                output.append((results.column("uuid")[i].as_py(), 1 - distance))
            return output

        return await asyncio.to_thread(_search)
