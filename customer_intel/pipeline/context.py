"""
Prompt Context Helpers

Size-bounded assembly of retrieved text for the retrieval-augmented stages.
"""

from __future__ import annotations

from typing import Iterable

from customer_intel.types.analysis import EvidenceItem

_SEPARATOR = "\n\n"


def concat_context(parts: Iterable[str | None], max_chars: int) -> str:
    """
    Greedily join non-blank parts with blank lines, at most max_chars long.

    The first part that does not fit is cut to the remaining space and
    nothing after it is used.

    Example:
        >>> concat_context(["aaaa", "bbbb", "cccc"], 10)
        'aaaa\\n\\nbbbb'
        >>> concat_context(["aaaa", "bbbbbbbb"], 9)
        'aaaa\\n\\nbbb'
    """
    selected: list[str] = []
    size = 0
    for part in parts:
        text = (part or "").strip()
        if not text:
            continue
        separator = len(_SEPARATOR) if selected else 0
        if size + separator + len(text) > max_chars:
            remaining = max_chars - size - separator
            if remaining > 0:
                selected.append(text[:remaining])
            break
        selected.append(text)
        size += separator + len(text)
    return _SEPARATOR.join(selected)


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}..."


def select_evidence(
    candidates: Iterable[EvidenceItem],
    *,
    max_items: int = 12,
    max_chars: int = 800,
) -> list[EvidenceItem]:
    """First item per source, texts truncated, at most max_items."""
    selected: list[EvidenceItem] = []
    seen: set[str] = set()
    for item in candidates:
        if len(selected) >= max_items:
            break
        key = item.source or item.id
        if not item.text.strip() or key in seen:
            continue
        seen.add(key)
        selected.append(item.model_copy(update={"text": truncate(item.text, max_chars)}))
    return selected
