"""
OpenAI embeddings for analysis vector slots.

Market analyses embed every lens-wrapped chunk of their narrative, so
requests are sent in batches of ``batch_size`` texts.
"""

from __future__ import annotations

import asyncio
import logging

from langchain_openai import OpenAIEmbeddings
from pydantic import SecretStr

from customer_intel.errors import GenerationFailure
from customer_intel.providers.base import EmbeddingProvider

logger = logging.getLogger(__name__)

MODEL_DIMENSIONS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}

DEFAULT_MODEL = "text-embedding-3-small"


def _get_openai_embeddings(
    api_key: str | None,
    model: str,
    dimensions: int | None,
) -> OpenAIEmbeddings:
    if api_key:
        return OpenAIEmbeddings(model=model, dimensions=dimensions, api_key=SecretStr(api_key))
    return OpenAIEmbeddings(model=model, dimensions=dimensions)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Args:
        api_key: OpenAI API key; OPENAI_API_KEY is used when None
        model: Embedding model
        dimensions: Shortened output size (text-embedding-3 models only)
        batch_size: Texts per embedding request
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        batch_size: int = 64,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._api_key = api_key
        self._model = model
        self._requested_dimensions = dimensions
        self._dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        self._batch_size = batch_size
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> OpenAIEmbeddings:
        if self._client is None:
            self._client = _get_openai_embeddings(self._api_key, self._model, self._requested_dimensions)
        return self._client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    def _checked(self, vectors: list[list[float]]) -> list[list[float]]:
        for vector in vectors:
            if len(vector) != self._dimensions:
                raise GenerationFailure(
                    f"{self._model} returned {len(vector)} dimensions, expected {self._dimensions}"
                )
        return vectors

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in input order, one request per batch."""
        client = self._get_client()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start:start + self._batch_size]
            try:
                vectors.extend(await asyncio.to_thread(client.embed_documents, batch))
            except Exception as e:
                raise GenerationFailure(f"Embedding {len(batch)} texts with {self._model} failed: {e}") from e
        logger.debug(f"Embedded {len(texts)} texts with {self._model}")
        return self._checked(vectors)

    async def embed_single(self, text: str) -> list[float]:
        client = self._get_client()
        try:
            vector = await asyncio.to_thread(client.embed_query, text)
        except Exception as e:
            raise GenerationFailure(f"Embedding with {self._model} failed: {e}") from e
        return self._checked([vector])[0]
