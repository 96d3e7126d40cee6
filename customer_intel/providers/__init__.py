"""
External Providers

Provider-agnostic interfaces for the services the pipeline depends on.

Modules:
    base: Abstract provider interfaces and tool descriptors
    llm/: LLM provider implementations
    embedding/: Embedding provider implementations
    storage_area/: External storage areas (vector stores + ingestion batches)

Design:
    - All providers implement abstract interfaces
    - Lazy client construction, so importing does not require credentials
    - Structured output via LangChain's with_structured_output
"""

from customer_intel.providers.base import (
    EmbeddingProvider,
    LLMProvider,
    StorageArea,
    StorageAreaProvider,
    file_search_tool,
    web_search_tool,
)

__all__ = [
    "EmbeddingProvider",
    "LLMProvider",
    "StorageArea",
    "StorageAreaProvider",
    "file_search_tool",
    "web_search_tool",
]
