"""
Entity Store Interface

Defines identity derivation, collection schemas and the contract every
storage backend implements.

Identity:
    identity_of("Acme.com ") == identity_of("acme.com")
    Ids are uuid5 values under a fixed namespace, so the same natural key
    always maps to the same id in every process and backend.

Write semantics:
    put() inserts at most once per identity and raises Conflict when the
    id is taken. Callers treat Conflict as "already done" and re-get().
    link() is idempotent; re-linking the same edge is a no-op.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping
from uuid import NAMESPACE_DNS, UUID, uuid5

from pydantic import BaseModel

ENTITY_NAMESPACE: UUID = uuid5(NAMESPACE_DNS, "customer-intel.entities")

PAIR_SEPARATOR = "|"


def normalize_key(key: str) -> str:
    return key.strip().lower()


def identity_of(key: str) -> str:
    """Deterministic id for a natural key."""
    normalized = normalize_key(key)
    if not normalized:
        raise ValueError("Natural key must not be empty")
    return str(uuid5(ENTITY_NAMESPACE, normalized))


def pair_key(first: str, second: str) -> str:
    """Composed natural key for an ordered pair, e.g. customer|competitor."""
    return f"{normalize_key(first)}{PAIR_SEPARATOR}{normalize_key(second)}"


@dataclass(frozen=True)
class CollectionSchema:
    """
    One-time declaration of a collection.

    Attributes:
        name: Collection name
        model: Pydantic model of the stored entities
        key_field: Model attribute holding the natural key
        relations: Declared outgoing edges, relation name -> target collection
        vector_slots: Named embeddings stored alongside an entity
        filterable: Model attributes usable in find() and search() filters
    """

    name: str
    model: type[BaseModel]
    key_field: str
    relations: Mapping[str, str] = field(default_factory=dict)
    vector_slots: tuple[str, ...] = ()
    filterable: tuple[str, ...] = ()

    def key_of(self, entity: BaseModel) -> str:
        return normalize_key(str(getattr(entity, self.key_field)))

    def identity_of(self, entity: BaseModel) -> str:
        return identity_of(self.key_of(entity))

    def filter_values(self, entity: BaseModel) -> dict[str, str]:
        values: dict[str, str] = {}
        for name in self.filterable:
            value = getattr(entity, name)
            values[name] = "" if value is None else str(value)
        return values

    def target_of(self, relation: str) -> str:
        try:
            return self.relations[relation]
        except KeyError:
            raise ValueError(
                f"Relation '{relation}' is not declared on collection '{self.name}'"
            ) from None

    def check_vectors(self, vectors: Mapping[str, list[float]] | None) -> None:
        for slot in vectors or {}:
            if slot not in self.vector_slots:
                raise ValueError(f"Vector slot '{slot}' is not declared on collection '{self.name}'")

    def check_filters(self, where: Mapping[str, Any] | None) -> None:
        for name in where or {}:
            if name not in self.filterable:
                raise ValueError(f"'{name}' is not a filterable property of '{self.name}'")


class EntityStore(ABC):
    """
    Abstract document store with typed fetch, idempotent insert,
    directed links and named vector slots.

    Lifecycle:
        store = ParquetEntityStore(path)
        await store.initialize()
        await store.declare(schema)
        # ... operations ...
        await store.close()

    Or using context manager:
        async with MemoryEntityStore() as store:
            ...
    """

    def __init__(self) -> None:
        self._schemas: dict[str, CollectionSchema] = {}

    async def initialize(self) -> None:
        """Prepare backing resources."""

    async def close(self) -> None:
        """Release backing resources."""

    async def __aenter__(self) -> "EntityStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    async def declare(self, schema: CollectionSchema) -> None:
        """Declare a collection. Re-declaring the same name replaces it."""
        self._schemas[schema.name] = schema

    def schema(self, collection: str) -> CollectionSchema:
        try:
            return self._schemas[collection]
        except KeyError:
            raise KeyError(f"Collection '{collection}' has not been declared") from None

    @property
    def collections(self) -> list[str]:
        return sorted(self._schemas)

    # -------------------------------------------------------------------------
    # Entity operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get(self, collection: str, entity_id: str) -> BaseModel | None:
        """Fetch an entity by id, typed as the collection's model."""
        ...

    async def get_by_key(self, collection: str, key: str) -> BaseModel | None:
        return await self.get(collection, identity_of(key))

    @abstractmethod
    async def put(
        self,
        collection: str,
        entity: BaseModel,
        vectors: Mapping[str, list[float]] | None = None,
    ) -> str:
        """
        Insert an entity and its vectors.

        Returns:
            The entity id

        Raises:
            Conflict: If an entity with the same id already exists
        """
        ...

    @abstractmethod
    async def link(self, collection: str, from_id: str, relation: str, to_id: str) -> None:
        """
        Create a directed edge from an entity to the relation's target.

        Raises:
            MissingPrerequisite: If either endpoint does not exist
            ValueError: If the relation is not declared
        """
        ...

    @abstractmethod
    async def links_from(self, collection: str, from_id: str, relation: str) -> list[str]:
        """Ids linked from an entity through one relation."""
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        limit: int = 100,
    ) -> list[BaseModel]:
        """Entities whose filterable properties equal the given values."""
        ...

    @abstractmethod
    async def search(
        self,
        collection: str,
        slot: str,
        vector: list[float],
        limit: int = 10,
        where: Mapping[str, Any] | None = None,
    ) -> list[tuple[BaseModel, float]]:
        """
        Cosine-similarity search over one vector slot.

        Returns list of (entity, similarity) tuples, best first.
        """
        ...

    @abstractmethod
    async def count(self, collection: str) -> int:
        ...
