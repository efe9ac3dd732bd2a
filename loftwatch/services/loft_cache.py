"""In-process cache of loft payloads with hit/miss statistics."""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from loftwatch.core.exceptions import InitializationError
from loftwatch.models.stats import CacheStats

logger = logging.getLogger(__name__)

LoftLoader = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]

TEST_DATA_KEY = "__cache_self_test__"


@dataclass
class CacheEntry:
    """Cached value with its expiry time."""

    value: Dict[str, Any]
    expires_at: float


class LoftCacheService:
    """LRU cache of loft payloads keyed by loft id."""

    def __init__(
        self,
        loader: Optional[LoftLoader] = None,
        ttl_seconds: int = 300,
        max_entries: int = 1000,
    ) -> None:
        """Initialize cache with an optional loader used on misses."""
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._total_lookup_ms = 0.0

    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= time.time():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.value

    def _set(self, key: str, value: Dict[str, Any]) -> None:
        self._entries[key] = CacheEntry(value, time.time() + self.ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    async def get_loft(
        self, loft_id: str, loader: Optional[LoftLoader] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Return a loft payload, loading and caching it on a miss.

        Args:
            loft_id: Loft identifier
            loader: Loader overriding the default one for this call

        Returns:
            Loft payload or None when the loader finds nothing
        """
        started = time.perf_counter()
        try:
            value = self._get(loft_id)
            if value is not None:
                self._hits += 1
                return value

            self._misses += 1
            load = loader or self.loader
            if load is None:
                return None
            value = await load(loft_id)
            if value is not None:
                self._set(loft_id, value)
            return value
        finally:
            self._total_lookup_ms += (time.perf_counter() - started) * 1000

    def get_cache_stats(self) -> CacheStats:
        """Current hit rate, size and lookup latency."""
        total = self._hits + self._misses
        return CacheStats(
            hit_rate=self._hits / total * 100 if total else 0.0,
            total_requests=total,
            cache_size=len(self._entries),
            average_response_time=self._total_lookup_ms / total if total else 0.0,
        )

    def invalidate_all_cache(self) -> int:
        """Drop every entry and reset statistics."""
        removed = len(self._entries)
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._total_lookup_ms = 0.0
        logger.info("Loft cache invalidated", extra={"removed_entries": removed})
        return removed

    async def warm_up_cache(self, loft_ids: list[str]) -> int:
        """Preload lofts; returns how many ended up cached."""
        if self.loader is None:
            raise InitializationError(
                "Cache warm-up requires a loft loader", service="cache"
            )

        loaded = 0
        for loft_id in loft_ids:
            if self._get(loft_id) is not None:
                loaded += 1
                continue
            value = await self.loader(loft_id)
            if value is not None:
                self._set(loft_id, value)
                loaded += 1

        logger.info(
            "Cache warm-up completed",
            extra={"requested": len(loft_ids), "loaded": loaded},
        )
        return loaded

    async def cache_test_loft_data(
        self, loader: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        """Round-trip a payload through the cache to prove it works."""
        value = await loader()
        self._set(TEST_DATA_KEY, value)
        cached = self._get(TEST_DATA_KEY)
        if cached != value:
            raise InitializationError(
                "Cache self-test read back a different value", service="cache"
            )
        del self._entries[TEST_DATA_KEY]
        return cached
