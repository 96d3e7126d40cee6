"""
DuckDB Query Layer

SQL reads over the entity store's Parquet datasets.

Modules:
    queries: Record lookups, filtered finds, link traversal and counts
"""

from customer_intel.storage.duckdb.queries import DuckDBQueries

__all__ = ["DuckDBQueries"]
