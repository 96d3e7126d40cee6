"""
Utility Functions

Modules:
    cache: Request-coalescing async cache with failure eviction
    html: HTML-to-text conversion for fetched documents
"""

from customer_intel.utils.cache import CoalescingCache
from customer_intel.utils.html import html_to_text

__all__ = ["CoalescingCache", "html_to_text"]
