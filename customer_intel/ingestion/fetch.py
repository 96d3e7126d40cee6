"""
Document Fetcher

Checks and downloads source documents over HTTP.

    is_available(url)  HEAD, then a one-byte ranged GET if HEAD is refused
    fetch_text(url)    GET and reduce HTML to plain text

Both use one timeout (8 s by default). fetch_text() raises
DocumentUnavailable for any transport error, non-2xx status or empty body;
the ingestion handler substitutes a generated fallback in that case.
"""

from __future__ import annotations

import logging

import httpx

from customer_intel.errors import DocumentUnavailable
from customer_intel.utils.html import html_to_text, looks_like_html

logger = logging.getLogger(__name__)

_USER_AGENT = "customer-intel/0.1 (+document-ingestion)"


class DocumentFetcher:
    """
    Async HTTP fetcher built on httpx.AsyncClient.

    Args:
        timeout_seconds: Timeout for each request
        client: Optional pre-built client (tests pass one with a MockTransport)
    """

    def __init__(self, timeout_seconds: float = 8.0, client: httpx.AsyncClient | None = None):
        self._timeout = httpx.Timeout(timeout_seconds)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def is_available(self, url: str) -> bool:
        """True if the URL answers HEAD (or a ranged GET) with a success status."""
        client = self._get_client()
        try:
            head = await client.head(url)
            if head.is_success:
                return True
            ranged = await client.get(url, headers={"Range": "bytes=0-0"})
            return ranged.is_success
        except httpx.HTTPError as e:
            logger.info(f"Availability check failed for {url}: {e}")
            return False

    async def fetch_text(self, url: str) -> str:
        """
        Download a document as text.

        Raises:
            DocumentUnavailable: On transport errors, error statuses or empty content
        """
        client = self._get_client()
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise DocumentUnavailable(url, str(e)) from e

        if not response.is_success:
            raise DocumentUnavailable(url, f"HTTP {response.status_code}")

        body = response.text
        if looks_like_html(response.headers.get("content-type"), body):
            body = html_to_text(body)
        if not body.strip():
            raise DocumentUnavailable(url, "empty document")
        return body
