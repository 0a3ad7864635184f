"""In-memory cache provider using cachetools.TTLCache.

Backs the feed's join step: author display names and parent concerts are
looked up once per TTL window instead of once per feed item.  Not shared
across processes; a Redis adapter implementing ICacheProvider can replace
it without touching the feed.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import TTLCache

from encore.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for every entry.
    """

    def __init__(self, max_size: int = 2048, ttl: int = 60) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)

    async def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        logger.debug("cache_hit" if value is not None else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        ``TTLCache`` applies the uniform TTL given at construction; a
        per-item *ttl* is accepted for interface compatibility only.
        """
        self._cache[key] = value

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._cache

    def clear(self) -> None:
        self._cache.clear()
