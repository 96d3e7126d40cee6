"""
Entity Storage

Document store with deterministic identities, at-most-once inserts,
directed links and named vector slots.

Modules:
    base: EntityStore contract, CollectionSchema, identity_of(), pair_key()
    collections: Declarations of the pipeline's collections
    memory: In-process backend (tests, dry runs)
    parquet/: Persistent backend
    duckdb/: Relational reads over Parquet
    lancedb/: Vector slot tables

Store Directory Structure (Parquet backend):
    intel_store/
    ├── metadata.json
    ├── collections.json          # declared schemas
    ├── CompanyMasterData.parquet/
    ├── ...                       # one dataset per collection
    ├── links.parquet/            # all edges
    └── lancedb/
        └── <collection>__<slot>.lance/
"""

from customer_intel.storage.base import (
    CollectionSchema,
    EntityStore,
    identity_of,
    normalize_key,
    pair_key,
)
from customer_intel.storage.collections import COLLECTIONS, declare_collections
from customer_intel.storage.memory import MemoryEntityStore
from customer_intel.storage.parquet.backend import ParquetEntityStore

__all__ = [
    "COLLECTIONS",
    "CollectionSchema",
    "EntityStore",
    "MemoryEntityStore",
    "ParquetEntityStore",
    "declare_collections",
    "identity_of",
    "normalize_key",
    "pair_key",
]
