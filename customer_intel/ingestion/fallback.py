"""
Markdown Fallback

When a source document cannot be fetched, its short summary is expanded
into a markdown brief and ingested in its place.
"""

from __future__ import annotations

from customer_intel.errors import GenerationFailure
from customer_intel.providers.base import LLMProvider

_SYSTEM = "You are a research assistant preparing a file for a vector store."


def _build_prompt(domain: str, doc_type: str, summary: str, url: str | None) -> str:
    lines = [
        "Task:",
        "Expand the summary below into a more detailed markdown brief.",
        "",
        "Context:",
        f"- Domain: {domain}",
        f"- Type: {doc_type}",
    ]
    if url:
        lines.append(f"- Source URL (unavailable): {url}")
    lines.extend([
        "",
        "Summary to expand:",
        summary,
        "",
        "Rules:",
        "- Output markdown only.",
        "- Do not invent facts that are not implied by the summary.",
        "- If details are missing, state them as unknown.",
        "- Keep the content concise but richer than the summary.",
    ])
    return "\n".join(lines)


async def generate_markdown_fallback(
    llm: LLMProvider,
    *,
    domain: str,
    doc_type: str,
    summary: str,
    url: str | None = None,
) -> str:
    """
    Expand a fallback summary into markdown.

    Raises:
        GenerationFailure: If the model returns nothing
    """
    markdown = (await llm.generate(_build_prompt(domain, doc_type, summary, url), system=_SYSTEM)).strip()
    if not markdown:
        raise GenerationFailure(f"Fallback markdown for {domain} came back empty")
    return markdown
