"""
Request-Coalescing Async Cache

Memoizes the result of an async factory per key. Concurrent callers for
the same key share one in-flight call; a failed call is evicted so the
next caller tries again.

Example:
    >>> cache: CoalescingCache[str, StorageArea] = CoalescingCache()
    >>> area = await cache.get_or_create("news/acme.com", lambda: provider.create("news/acme.com"))
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CoalescingCache(Generic[K, V]):
    """
    Process-local cache of shared futures.

    Owned by whoever builds the pipeline and passed in explicitly;
    there is no module-level instance.
    """

    def __init__(self) -> None:
        self._entries: dict[K, asyncio.Future[V]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_create(self, key: K, factory: Callable[[], Awaitable[V]]) -> V:
        """
        Return the cached value for key, creating it at most once at a time.

        Raises:
            Whatever the factory raised; the entry is evicted first.
        """
        future = self._entries.get(key)
        if future is None:
            future = asyncio.ensure_future(factory())
            self._entries[key] = future

        try:
            return await asyncio.shield(future)
        except Exception:
            if self._entries.get(key) is future:
                del self._entries[key]
                logger.warning(f"Evicted failed cache entry for {key!r}")
            raise

    def invalidate(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
