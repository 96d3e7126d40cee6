"""
OpenAI Storage Area Provider

Storage areas are OpenAI vector stores; documents are uploaded as files
and attached through file batches, whose status the batch poller tracks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from customer_intel.errors import StorageAreaError
from customer_intel.providers.base import StorageArea, StorageAreaProvider
from customer_intel.types.results import BatchStatus

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "in_progress": BatchStatus.PENDING,
    "completed": BatchStatus.COMPLETED,
    "failed": BatchStatus.FAILED,
    "cancelled": BatchStatus.CANCELLED,
}


def _get_async_openai(api_key: str | None = None) -> "AsyncOpenAI":
    try:
        from openai import AsyncOpenAI
    except ImportError:
        raise ImportError(
            "OpenAI storage areas require the 'openai' package. Install with: pip install openai"
        )
    return AsyncOpenAI(api_key=api_key) if api_key else AsyncOpenAI()


class OpenAIStorageAreaProvider(StorageAreaProvider):
    """
    Vector-store backed storage areas.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
    """

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> "AsyncOpenAI":
        if self._client is None:
            self._client = _get_async_openai(self._api_key)
        return self._client

    async def find_by_name(self, name: str) -> StorageArea | None:
        from openai import OpenAIError

        client = self._get_client()
        try:
            async for store in client.vector_stores.list(limit=100):
                if store.name == name:
                    return StorageArea(id=store.id, name=name)
        except OpenAIError as e:
            raise StorageAreaError(f"Listing vector stores failed: {e}") from e
        return None

    async def create(self, name: str) -> StorageArea:
        from openai import OpenAIError

        try:
            store = await self._get_client().vector_stores.create(name=name)
        except OpenAIError as e:
            raise StorageAreaError(f"Creating vector store '{name}' failed: {e}") from e
        logger.info(f"Created vector store '{name}' ({store.id})")
        return StorageArea(id=store.id, name=name)

    async def upload_text(self, filename: str, text: str) -> str:
        from openai import OpenAIError

        try:
            uploaded = await self._get_client().files.create(
                file=(filename, text.encode("utf-8"), "text/markdown"),
                purpose="assistants",
            )
        except OpenAIError as e:
            raise StorageAreaError(f"Uploading '{filename}' failed: {e}") from e
        return uploaded.id

    async def create_batch(self, storage_area_id: str, file_ids: list[str]) -> str:
        from openai import OpenAIError

        try:
            batch = await self._get_client().vector_stores.file_batches.create(
                vector_store_id=storage_area_id,
                file_ids=file_ids,
            )
        except OpenAIError as e:
            raise StorageAreaError(f"Creating file batch on {storage_area_id} failed: {e}") from e
        return batch.id

    async def batch_status(self, storage_area_id: str, batch_id: str) -> BatchStatus:
        from openai import OpenAIError

        try:
            batch = await self._get_client().vector_stores.file_batches.retrieve(
                batch_id,
                vector_store_id=storage_area_id,
            )
        except OpenAIError as e:
            raise StorageAreaError(f"Retrieving batch {batch_id} failed: {e}") from e
        return _STATUS_MAP.get(batch.status, BatchStatus.PENDING)
