"""
Text Chunking

Modules:
    words: Overlapping word-window chunker used before embedding
"""

from customer_intel.ingestion.chunking.words import TextChunk, chunk_words

__all__ = ["TextChunk", "chunk_words"]
