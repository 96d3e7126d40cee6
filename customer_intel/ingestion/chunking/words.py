"""
Word-Window Chunker

Splits text into overlapping windows of whitespace-delimited words.

Algorithm:
    1. Tokenize on whitespace
    2. Emit windows of max_words words, advancing by max_words - overlap_words
    3. Stop once a window reaches the last word

Properties:
    - every chunk after the first starts with the last overlap_words words
      of the previous chunk
    - every chunk except the last holds exactly max_words words
"""

import re
from dataclasses import dataclass

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class TextChunk:
    """A window of words. start/end are word offsets (end exclusive)."""

    text: str
    position: int
    start: int
    end: int

    @property
    def word_count(self) -> int:
        return self.end - self.start


def chunk_words(
    text: str,
    *,
    max_words: int = 120,
    overlap_words: int = 25,
) -> list[TextChunk]:
    """
    Split text into overlapping word windows.

    Args:
        text: Source text
        max_words: Words per chunk
        overlap_words: Words repeated from the end of the previous chunk

    Returns:
        Chunks in order; empty for blank text
    """
    if max_words < 1:
        raise ValueError("max_words must be at least 1")
    if not 0 <= overlap_words < max_words:
        raise ValueError("overlap_words must be >= 0 and smaller than max_words")

    words = [w for w in _WHITESPACE.split(text.strip()) if w]
    if not words:
        return []

    step = max_words - overlap_words
    chunks: list[TextChunk] = []
    start = 0
    while True:
        end = min(start + max_words, len(words))
        chunks.append(
            TextChunk(
                text=" ".join(words[start:end]),
                position=len(chunks),
                start=start,
                end=end,
            )
        )
        if end == len(words):
            break
        start += step

    return chunks
