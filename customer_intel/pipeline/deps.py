"""
Pipeline Dependencies

Everything a stage handler needs, owned by the process and passed in
explicitly. Nothing here is a module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from customer_intel.config import IntelConfig
from customer_intel.ingestion.fetch import DocumentFetcher
from customer_intel.messaging.base import MessageBus
from customer_intel.providers.base import (
    EmbeddingProvider,
    LLMProvider,
    StorageArea,
    StorageAreaProvider,
)
from customer_intel.storage.base import EntityStore
from customer_intel.utils.cache import CoalescingCache


@dataclass
class PipelineDeps:
    """
    Collaborators shared by all stages.

    Attributes:
        config: Pipeline configuration
        store: Entity store with all collections declared
        bus: Bus that propagation messages are published to
        llm: Default generation provider (config.llm_model)
        embeddings: Embedding provider for vector slots and retrieval
        storage_areas: External storage areas (vector stores)
        fetcher: Source document fetcher for ingestion
        storage_area_cache: Process-wide name -> StorageArea cache
    """

    config: IntelConfig
    store: EntityStore
    bus: MessageBus
    llm: LLMProvider
    embeddings: EmbeddingProvider
    storage_areas: StorageAreaProvider
    fetcher: DocumentFetcher
    storage_area_cache: CoalescingCache[str, StorageArea] = field(default_factory=CoalescingCache)

    async def close(self) -> None:
        await self.fetcher.close()
        await self.store.close()

    def llm_for(self, model: str) -> LLMProvider:
        """The default provider, switched to another model when needed."""
        if model == self.llm.model_name:
            return self.llm
        return self.llm.with_model(model)
