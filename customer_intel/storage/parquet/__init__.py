"""
Parquet Storage

Entity store persisted as Parquet datasets, read through DuckDB, with
LanceDB tables for vector slots.

Modules:
    backend: ParquetEntityStore
"""

from customer_intel.storage.parquet.backend import ParquetEntityStore

__all__ = ["ParquetEntityStore"]
