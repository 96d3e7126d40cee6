"""
Storage Area Providers

Modules:
    openai: OpenAIStorageAreaProvider (vector stores and file batches)
"""

from customer_intel.providers.storage_area.openai import OpenAIStorageAreaProvider

__all__ = ["OpenAIStorageAreaProvider"]
