"""
Embedding Providers

Modules:
    openai: OpenAIEmbeddingProvider (LangChain OpenAIEmbeddings)
"""

from customer_intel.providers.embedding.openai import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
