"""
Storage Area Resolution

Maps storage-area names to handles, creating missing areas lazily. The
name -> handle cache coalesces concurrent lookups and forgets failures.
"""

from __future__ import annotations

import logging

from customer_intel.providers.base import StorageArea, StorageAreaProvider
from customer_intel.utils.cache import CoalescingCache

logger = logging.getLogger(__name__)


class StorageAreaResolver:
    """
    Find-or-create for named storage areas.

    Args:
        provider: External storage area provider
        cache: Shared name -> StorageArea cache (one per process)
    """

    def __init__(
        self,
        provider: StorageAreaProvider,
        cache: CoalescingCache[str, StorageArea] | None = None,
    ) -> None:
        self._provider = provider
        self._cache: CoalescingCache[str, StorageArea] = cache if cache is not None else CoalescingCache()

    async def resolve(self, name: str) -> StorageArea:
        return await self._cache.get_or_create(name, lambda: self._find_or_create(name))

    async def _find_or_create(self, name: str) -> StorageArea:
        existing = await self._provider.find_by_name(name)
        if existing is not None:
            return existing
        logger.info(f"Storage area '{name}' not found, creating it")
        return await self._provider.create(name)
