"""
Ingestion Pipeline

Moves source documents into external storage areas before the stages
that retrieve from them run.

Modules:
    chunking/: Overlapping word-window chunker
    fetch: HTTP document fetcher (availability check + text extraction)
    fallback: Markdown expansion of a summary for unfetchable documents
    storage_areas: Coalescing find-or-create of named storage areas
    loader: Ingestion queue handler (upload + batch submission)
    batch: Batch polling state machine and the batch-poll queue handler
"""

from customer_intel.ingestion.batch import BatchPoller, BatchPollHandler
from customer_intel.ingestion.chunking import TextChunk, chunk_words
from customer_intel.ingestion.fetch import DocumentFetcher
from customer_intel.ingestion.loader import DocumentIngestor
from customer_intel.ingestion.storage_areas import StorageAreaResolver

__all__ = [
    "BatchPollHandler",
    "BatchPoller",
    "DocumentFetcher",
    "DocumentIngestor",
    "StorageAreaResolver",
    "TextChunk",
    "chunk_words",
]
