"""
LanceDB Vector Indices

Vector search for the entity store's named vector slots.

Modules:
    indices: Slot tables, cosine search with property filters
"""

from customer_intel.storage.lancedb.indices import LanceDBIndices

__all__ = ["LanceDBIndices"]
