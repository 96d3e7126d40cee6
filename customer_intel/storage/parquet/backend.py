"""
Parquet Entity Store

Orchestrates Parquet dataset writes, DuckDB reads and LanceDB vector slots.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping
from uuid import uuid4

import pyarrow as pa
import pyarrow.parquet as pq
from filelock import FileLock
from pydantic import BaseModel

from customer_intel.errors import Conflict, MissingPrerequisite
from customer_intel.storage.base import CollectionSchema, EntityStore, identity_of
from customer_intel.storage.duckdb.queries import DuckDBQueries
from customer_intel.storage.lancedb.indices import LanceDBIndices

logger = logging.getLogger(__name__)


class ParquetEntityStore(EntityStore):
    """
    Parquet-based entity store.

    Directory structure:
        store_path/
        ├── CompanyMasterData.parquet/    (dataset directory of part files)
        ├── CompanyAssessment.parquet/
        ├── ...
        ├── links.parquet/
        ├── lancedb/
        │   ├── MarketAnalysis__analysis_text.lance/
        │   └── ...
        ├── collections.json
        └── metadata.json

    Thread safety:
        - put() and link() check for an existing row and append inside one
          file lock (.store.lock), so first-writer-wins holds across
          processes on one host
        - put() writes vector slots under the same lock before the row, so
          a failed slot write leaves nothing behind for a retry to find
        - Reads are lock-free (part files are immutable)
    """

    SCHEMA_VERSION = "1.0.0"

    def __init__(self, store_path: Path | str):
        super().__init__()
        self._store_path = Path(store_path)
        self._lock = FileLock(self._store_path / ".store.lock", timeout=30)
        self._lancedb = LanceDBIndices(self._store_path / "lancedb")
        self._duckdb = DuckDBQueries(self._store_path)
        self._initialized = False

    @property
    def store_path(self) -> Path:
        return self._store_path

    async def initialize(self) -> None:
        """Initialize storage backend."""
        if self._initialized:
            return

        def _init() -> None:
            self._store_path.mkdir(parents=True, exist_ok=True)
            self._write_metadata_if_missing()

        await asyncio.to_thread(_init)
        await self._lancedb.initialize()
        await self._duckdb.initialize()
        self._initialized = True

    async def close(self) -> None:
        """Close storage backend."""
        await self._lancedb.close()
        await self._duckdb.close()
        self._initialized = False

    def _write_metadata_if_missing(self) -> None:
        meta_path = self._store_path / "metadata.json"
        if not meta_path.exists():
            metadata = {
                "schema_version": self.SCHEMA_VERSION,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            meta_path.write_text(json.dumps(metadata, indent=2))

    async def declare(self, schema: CollectionSchema) -> None:
        """Declare a collection and record it in collections.json."""
        await super().declare(schema)

        def _write_manifest() -> None:
            with self._lock:
                manifest = {
                    name: {
                        "model": s.model.__name__,
                        "key_field": s.key_field,
                        "relations": dict(s.relations),
                        "vector_slots": list(s.vector_slots),
                        "filterable": list(s.filterable),
                    }
                    for name, s in sorted(self._schemas.items())
                }
                path = self._store_path / "collections.json"
                temp_path = path.with_suffix(".json.tmp")
                temp_path.write_text(json.dumps(manifest, indent=2))
                temp_path.replace(path)

        await asyncio.to_thread(_write_manifest)

    # -------------------------------------------------------------------------
    # Parquet Schemas
    # -------------------------------------------------------------------------

    @staticmethod
    def _record_schema(schema: CollectionSchema) -> pa.Schema:
        fields = [
            ("uuid", pa.string()),
            ("natural_key", pa.string()),
            ("payload", pa.string()),  # JSON-encoded entity
            ("created_at", pa.string()),
        ]
        fields.extend((name, pa.string()) for name in schema.filterable)
        return pa.schema(fields)

    @staticmethod
    def _link_schema() -> pa.Schema:
        return pa.schema([
            ("id", pa.string()),
            ("collection", pa.string()),
            ("from_uuid", pa.string()),
            ("rel_type", pa.string()),
            ("to_collection", pa.string()),
            ("to_uuid", pa.string()),
            ("created_at", pa.string()),
        ])

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    async def put(
        self,
        collection: str,
        entity: BaseModel,
        vectors: Mapping[str, list[float]] | None = None,
    ) -> str:
        schema = self.schema(collection)
        if not isinstance(entity, schema.model):
            raise TypeError(f"{collection} stores {schema.model.__name__}, got {type(entity).__name__}")
        schema.check_vectors(vectors)

        key = schema.key_of(entity)
        entity_id = identity_of(key)
        properties = schema.filter_values(entity)

        def _write() -> bool:
            with self._lock:
                if self._duckdb.record_exists_sync(collection, entity_id):
                    return False
                # Vector slots land before the row; a row is never visible without them.
                for slot, vector in (vectors or {}).items():
                    self._lancedb.upsert_sync(collection, slot, entity_id, properties, vector)
                data: dict[str, list[Any]] = {
                    "uuid": [entity_id],
                    "natural_key": [key],
                    "payload": [entity.model_dump_json()],
                    "created_at": [datetime.now(timezone.utc).isoformat()],
                }
                for name, value in properties.items():
                    data[name] = [value]
                self._append_to_parquet(collection, data, self._record_schema(schema))
                return True

        if not await asyncio.to_thread(_write):
            raise Conflict(collection, entity_id)

        logger.debug(f"Stored {collection}[{key}] as {entity_id}")
        return entity_id

    async def link(self, collection: str, from_id: str, relation: str, to_id: str) -> None:
        target = self.schema(collection).target_of(relation)
        link_id = identity_of(f"{collection}|{from_id}|{relation}|{to_id}")

        def _write() -> None:
            with self._lock:
                if not self._duckdb.record_exists_sync(collection, from_id):
                    raise MissingPrerequisite(collection, from_id)
                if not self._duckdb.record_exists_sync(target, to_id):
                    raise MissingPrerequisite(target, to_id)
                if self._duckdb.link_exists_sync(link_id):
                    return
                data = {
                    "id": [link_id],
                    "collection": [collection],
                    "from_uuid": [from_id],
                    "rel_type": [relation],
                    "to_collection": [target],
                    "to_uuid": [to_id],
                    "created_at": [datetime.now(timezone.utc).isoformat()],
                }
                self._append_to_parquet(DuckDBQueries.LINKS, data, self._link_schema())

        await asyncio.to_thread(_write)

    def _append_to_parquet(
        self,
        dataset: str,
        data: dict[str, list[Any]],
        schema: pa.Schema,
    ) -> None:
        """Append an immutable part file to a dataset directory."""
        path = self._store_path / f"{dataset}.parquet"
        path.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pydict(data, schema=schema)

        now_part = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        part_name = f"part-{now_part}-{uuid4().hex}.parquet"
        part_path = path / part_name
        temp_part_path = path / f".{part_name}.tmp"
        pq.write_table(table, temp_part_path, compression="zstd")
        temp_part_path.replace(part_path)

    # -------------------------------------------------------------------------
    # Read Operations (delegate to DuckDB)
    # -------------------------------------------------------------------------

    async def get(self, collection: str, entity_id: str) -> BaseModel | None:
        schema = self.schema(collection)
        payload = await self._duckdb.get_payload(collection, entity_id)
        if payload is None:
            return None
        return schema.model.model_validate_json(payload)

    async def links_from(self, collection: str, from_id: str, relation: str) -> list[str]:
        self.schema(collection).target_of(relation)
        return await self._duckdb.links_from(collection, from_id, relation)

    async def find(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        limit: int = 100,
    ) -> list[BaseModel]:
        schema = self.schema(collection)
        schema.check_filters(where)
        payloads = await self._duckdb.find_payloads(collection, where, limit)
        return [schema.model.model_validate_json(p) for p in payloads]

    async def count(self, collection: str) -> int:
        self.schema(collection)
        return await self._duckdb.count(collection)

    # -------------------------------------------------------------------------
    # Vector Search (delegate to LanceDB)
    # -------------------------------------------------------------------------

    async def search(
        self,
        collection: str,
        slot: str,
        vector: list[float],
        limit: int = 10,
        where: Mapping[str, Any] | None = None,
    ) -> list[tuple[BaseModel, float]]:
        schema = self.schema(collection)
        schema.check_vectors({slot: vector})
        schema.check_filters(where)

        results = await self._lancedb.search(collection, slot, vector, limit, where)
        if not results:
            return []

        payloads = await self._duckdb.get_payloads(collection, [uuid for uuid, _ in results])
        return [
            (schema.model.model_validate_json(payloads[uuid]), score)
            for uuid, score in results
            if uuid in payloads
        ]
