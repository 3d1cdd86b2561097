"""
Read cache for backend query results.

Keys are tuples such as ``("item_requests", "incoming")``. Invalidation is by
prefix, so invalidating ``("item_requests",)`` drops every requisition list and
detail entry held by that cache. Caches are plain objects handed to services
as dependencies; ``CacheRegistry`` keeps one per viewer scope.
"""

import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Hashable, Optional, Tuple

import structlog

from portal.config import settings

logger = structlog.get_logger()

CacheKey = Tuple[Hashable, ...]

_MISSING = object()


class QueryCache:
    def __init__(self, ttl_seconds: int = settings.CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, tuple[float, Any]] = {}
        self.generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def get(self, key: CacheKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if self.ttl_seconds and self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return default
        return value

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = (self._clock(), value)

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop every entry whose key starts with ``prefix``. Returns the count removed."""
        self.generation += 1
        doomed = [k for k in self._entries if k[: len(prefix)] == prefix]
        for k in doomed:
            del self._entries[k]
        if doomed:
            logger.debug("cache_invalidated", prefix=list(prefix), removed=len(doomed))
        return len(doomed)

    def clear(self) -> None:
        self.generation += 1
        self._entries.clear()

    async def get_or_fetch(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        generation = self.generation
        value = await fetcher()
        # an invalidation during the fetch means the result may predate a mutation
        if self.generation == generation:
            self.set(key, value)
        return value


class CacheRegistry:
    """Holds one QueryCache per scope (viewer), evicting the least recently used."""

    def __init__(self, max_scopes: int = 256, ttl_seconds: int = settings.CACHE_TTL_SECONDS):
        self.max_scopes = max_scopes
        self.ttl_seconds = ttl_seconds
        self._caches: "OrderedDict[str, QueryCache]" = OrderedDict()

    def for_scope(self, scope: str) -> QueryCache:
        cache = self._caches.get(scope)
        if cache is None:
            cache = QueryCache(ttl_seconds=self.ttl_seconds)
            self._caches[scope] = cache
            if len(self._caches) > self.max_scopes:
                self._caches.popitem(last=False)
        else:
            self._caches.move_to_end(scope)
        return cache

    def drop(self, scope: str) -> Optional[QueryCache]:
        return self._caches.pop(scope, None)
