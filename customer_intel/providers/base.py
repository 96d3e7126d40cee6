"""
Abstract Provider Interfaces

Base classes for the external collaborators the pipeline talks to:
the generation service (LLM), embeddings, and external storage areas
(vector stores that ingest uploaded documents in batches).
"""

from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel

from customer_intel.types.results import BatchStatus

T = TypeVar("T", bound=BaseModel)

Tool = dict[str, Any]


def web_search_tool() -> Tool:
    """Provider-side web search."""
    return {"type": "web_search_preview"}


def file_search_tool(storage_area_ids: list[str]) -> Tool:
    """Provider-side retrieval over one or more storage areas."""
    return {"type": "file_search", "vector_store_ids": list(storage_area_ids)}


class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        tools: list[Tool] | None = None,
    ) -> str:
        """Generate a completion."""
        ...

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
        tools: list[Tool] | None = None,
    ) -> T:
        """
        Generate a structured response matching the schema.

        Raises:
            GenerationFailure: If the provider fails or the output cannot be parsed
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...

    @abstractmethod
    def with_model(self, model: str) -> "LLMProvider":
        """Same provider, different model."""
        ...


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for texts."""
        ...

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Embedding dimensions."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        ...


class StorageArea(BaseModel):
    """An external, named document collection (e.g. an OpenAI vector store)."""

    id: str
    name: str


class StorageAreaProvider(ABC):
    """Abstract interface for external storage areas and their ingestion batches."""

    @abstractmethod
    async def find_by_name(self, name: str) -> StorageArea | None:
        ...

    @abstractmethod
    async def create(self, name: str) -> StorageArea:
        ...

    @abstractmethod
    async def upload_text(self, filename: str, text: str) -> str:
        """Upload a text document; returns the file id."""
        ...

    @abstractmethod
    async def create_batch(self, storage_area_id: str, file_ids: list[str]) -> str:
        """Start ingesting uploaded files into a storage area; returns the batch id."""
        ...

    @abstractmethod
    async def batch_status(self, storage_area_id: str, batch_id: str) -> BatchStatus:
        ...
