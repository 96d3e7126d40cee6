"""
In-Memory Entity Store

Dictionary-backed EntityStore for tests, dry runs and the CLI's --memory
mode. Same semantics as the Parquet backend; nothing survives the process.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import numpy as np
from pydantic import BaseModel

from customer_intel.errors import Conflict, MissingPrerequisite
from customer_intel.storage.base import EntityStore

logger = logging.getLogger(__name__)


def _cosine(a: np.ndarray, b: np.ndarray) -> float:
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)


class MemoryEntityStore(EntityStore):
    """
    EntityStore held in process memory.

    Writes are serialized by an asyncio.Lock so check-then-insert is
    atomic within the event loop.
    """

    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, dict[str, BaseModel]] = {}
        self._vectors: dict[tuple[str, str], dict[str, np.ndarray]] = {}
        self._links: set[tuple[str, str, str, str]] = set()
        self._lock = asyncio.Lock()

    def _collection(self, collection: str) -> dict[str, BaseModel]:
        self.schema(collection)
        return self._records.setdefault(collection, {})

    async def get(self, collection: str, entity_id: str) -> BaseModel | None:
        entity = self._collection(collection).get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

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
        entity_id = schema.identity_of(entity)

        async with self._lock:
            records = self._collection(collection)
            if entity_id in records:
                raise Conflict(collection, entity_id)
            records[entity_id] = entity.model_copy(deep=True)
            for slot, vector in (vectors or {}).items():
                self._vectors.setdefault((collection, slot), {})[entity_id] = np.asarray(vector, dtype=float)

        logger.debug(f"Stored {collection}[{schema.key_of(entity)}] as {entity_id}")
        return entity_id

    async def link(self, collection: str, from_id: str, relation: str, to_id: str) -> None:
        target = self.schema(collection).target_of(relation)
        if from_id not in self._collection(collection):
            raise MissingPrerequisite(collection, from_id)
        if to_id not in self._collection(target):
            raise MissingPrerequisite(target, to_id)

        async with self._lock:
            self._links.add((collection, from_id, relation, to_id))

    async def links_from(self, collection: str, from_id: str, relation: str) -> list[str]:
        return sorted(
            to_id
            for (coll, src, rel, to_id) in self._links
            if coll == collection and src == from_id and rel == relation
        )

    def _matches(self, collection: str, entity: BaseModel, where: Mapping[str, Any] | None) -> bool:
        if not where:
            return True
        values = self.schema(collection).filter_values(entity)
        return all(values.get(name) == str(value) for name, value in where.items())

    async def find(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        limit: int = 100,
    ) -> list[BaseModel]:
        self.schema(collection).check_filters(where)
        found = [
            entity.model_copy(deep=True)
            for entity in self._collection(collection).values()
            if self._matches(collection, entity, where)
        ]
        return found[:limit]

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

        query = np.asarray(vector, dtype=float)
        records = self._collection(collection)
        scored: list[tuple[BaseModel, float]] = []
        for entity_id, stored in self._vectors.get((collection, slot), {}).items():
            entity = records[entity_id]
            if self._matches(collection, entity, where):
                scored.append((entity.model_copy(deep=True), _cosine(query, stored)))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:limit]

    async def count(self, collection: str) -> int:
        return len(self._collection(collection))
