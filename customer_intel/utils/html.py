"""
HTML Text Extraction

Reduces a fetched web page to plain text before it is uploaded into a
storage area.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_DROPPED_TAGS = ["script", "style", "noscript", "template", "svg", "nav", "footer", "aside"]
_BLANK_LINES = re.compile(r"\n\s*\n+")
_SPACES = re.compile(r"[ \t\r\f\v]+")


def html_to_text(html: str) -> str:
    """
    Extract readable text from an HTML document.

    Drops scripts, styles and page chrome, keeps paragraph breaks and
    collapses runs of whitespace.
    """
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(_DROPPED_TAGS):
        element.decompose()

    text = soup.get_text(separator="\n")
    lines = [_SPACES.sub(" ", line).strip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def looks_like_html(content_type: str | None, body: str) -> bool:
    if content_type and "html" in content_type.lower():
        return True
    return body.lstrip()[:15].lower().startswith(("<!doctype html", "<html"))
