"""
Document Ingestion Handler

Consumes the ingestion queue:

    1. Resolve (find or create) the named storage area
    2. For each document: fetch its text, or expand its fallback summary
       into markdown when the source cannot be fetched
    3. Upload every text and submit them as one batch
    4. Publish a batch-poll message carrying the submission context

With no documents there is nothing to wait for, so the market-analysis
continuation is published directly.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from customer_intel.errors import DocumentUnavailable, InvalidInput
from customer_intel.ingestion.fallback import generate_markdown_fallback
from customer_intel.ingestion.fetch import DocumentFetcher
from customer_intel.ingestion.storage_areas import StorageAreaResolver
from customer_intel.messaging import queues
from customer_intel.messaging.base import MessageBus
from customer_intel.providers.base import LLMProvider, StorageAreaProvider
from customer_intel.types.messages import (
    BatchPollMessage,
    IngestionDocument,
    IngestionMessage,
    MarketAnalysisMessage,
)
from customer_intel.types.validation import validate_message

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^a-z0-9]+")


def document_filename(domain: str, doc_type: str, position: int) -> str:
    stem = _UNSAFE_FILENAME.sub("-", f"{domain}-{doc_type}".lower()).strip("-")
    return f"{stem}-{position:02d}.md"


class DocumentIngestor:
    """Handler for the ingestion queue."""

    name = "ingestion"

    def __init__(
        self,
        fetcher: DocumentFetcher,
        llm: LLMProvider,
        resolver: StorageAreaResolver,
        storage_areas: StorageAreaProvider,
        bus: MessageBus,
    ) -> None:
        self._fetcher = fetcher
        self._llm = llm
        self._resolver = resolver
        self._storage_areas = storage_areas
        self._bus = bus

    async def _document_text(self, domain: str, document: IngestionDocument) -> str:
        if await self._fetcher.is_available(document.url):
            try:
                return await self._fetcher.fetch_text(document.url)
            except DocumentUnavailable as e:
                logger.info(f"{e}; using fallback summary")
        else:
            logger.info(f"Document unavailable: {document.url}; using fallback summary")

        return await generate_markdown_fallback(
            self._llm,
            domain=domain,
            doc_type=document.type,
            summary=document.fallback,
            url=document.url,
        )

    async def __call__(self, payload: Mapping[str, Any]) -> str | None:
        """Returns the submitted batch id, or None when nothing was uploaded."""
        validation = validate_message(IngestionMessage, payload)
        if not validation.ok or validation.value is None:
            raise InvalidInput(self.name, validation.issues)
        message = validation.value
        domain = message.context.domain

        area = await self._resolver.resolve(message.storage_area_name)

        file_ids: list[str] = []
        for position, document in enumerate(message.documents):
            text = await self._document_text(domain, document)
            filename = document_filename(domain, document.type, position)
            file_ids.append(await self._storage_areas.upload_text(filename, text))

        if not file_ids:
            logger.info(f"No documents to ingest for {domain}, continuing to market analysis")
            continuation = MarketAnalysisMessage.model_validate(
                {**message.context.to_payload(), "storage_area_id": area.id}
            )
            await self._bus.publish(queues.MARKET_ANALYSIS, continuation.to_payload())
            return None

        batch_id = await self._storage_areas.create_batch(area.id, file_ids)
        logger.info(f"Submitted batch {batch_id} with {len(file_ids)} document(s) for {domain}")

        poll = BatchPollMessage(
            storage_area_id=area.id,
            storage_area_name=message.storage_area_name,
            batch_id=batch_id,
            context=message.context,
        )
        await self._bus.publish(queues.BATCH_POLL, poll.to_payload())
        return batch_id
