"""
LRU cache with TTL and stale-while-revalidate windows.

Entries live in an OrderedDict whose order is recency order: the first key is
the least recently used and is the one evicted when the cache is full.
"""
import logging
from collections import OrderedDict
from dataclasses import replace
from typing import Callable, List, Optional, Set

from .cache_key import generate_cache_key
from .config import merge_cache_config, system_clock_ms
from .types import (
    CacheConfig,
    CacheEntry,
    CacheEvent,
    CacheEventListener,
    CacheEventType,
    CacheHit,
    CacheSetOptions,
    CacheStats,
    Clock,
    HttpResult,
    RequestConfig,
)


def mark_cache_hit(result: HttpResult, cache_hit: CacheHit) -> HttpResult:
    """Return a copy of a success result flagged as served from cache."""
    if not result.success:
        return result
    return replace(
        result,
        response=replace(result.response, cached=True, cache_hit=cache_hit),
    )


class LRUCache:
    """
    Bounded LRU map from cache key to CacheEntry with freshness tracking.

    An entry is fresh while ``now <= timestamp + ttl``, stale while
    ``now <= stale_until`` and expired afterwards. Expired entries are removed
    on access.

    Example:
        cache = LRUCache(CacheConfig(max_entries=2, ttl_ms=1000))
        cache.set(request, result)
        hit = cache.get(request)      # HttpSuccess with cache_hit="fresh"
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        key_generator: Optional[Callable[[RequestConfig], str]] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = merge_cache_config(config)
        self._max_entries = self._config.max_entries
        self._default_ttl = self._config.ttl_ms
        self._stale_window = self._config.stale_while_revalidate_ms
        self._key_generator = (
            key_generator or self._config.key_generator or generate_cache_key
        )
        self._clock = clock or system_clock_ms
        self._logger = logger or logging.getLogger(__name__)
        self._listeners: Set[CacheEventListener] = set()

        self._cache: "OrderedDict[str, CacheEntry[HttpResult]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._evictions = 0

    def key_for(self, request: RequestConfig) -> str:
        """Generate the cache key for a request."""
        return self._key_generator(request)

    def get(self, request: RequestConfig) -> Optional[HttpResult]:
        """Look up a request; None on miss or hard expiry."""
        key = self.key_for(request)
        entry = self._cache.get(key)

        if entry is None:
            self._misses += 1
            self._emit(CacheEventType.MISS, key)
            return None

        now = self._clock()

        if now > entry.stale_until:
            del self._cache[key]
            self._misses += 1
            self._emit(CacheEventType.EXPIRE, key)
            return None

        self._cache.move_to_end(key)

        if now <= entry.fresh_until:
            self._hits += 1
            self._logger.debug(f"LRUCache.get: fresh hit key={key}")
            self._emit(CacheEventType.HIT, key)
            return mark_cache_hit(entry.data, "fresh")

        self._stale_hits += 1
        self._logger.debug(f"LRUCache.get: stale hit key={key}")
        self._emit(CacheEventType.STALE_HIT, key)
        return mark_cache_hit(entry.data, "stale")

    def get_entry(self, request: RequestConfig) -> Optional[CacheEntry[HttpResult]]:
        """Get the raw entry without touching recency or counters."""
        return self._cache.get(self.key_for(request))

    def set(
        self,
        request: RequestConfig,
        result: HttpResult,
        options: Optional[CacheSetOptions] = None,
    ) -> None:
        """Store a successful result. Failures are never cached."""
        if not result.success:
            return

        key = self.key_for(request)
        now = self._clock()

        if key in self._cache:
            del self._cache[key]
        elif len(self._cache) >= self._max_entries:
            oldest_key, _ = self._cache.popitem(last=False)
            self._evictions += 1
            self._logger.debug(f"LRUCache.set: evicted key={oldest_key}")
            self._emit(CacheEventType.EVICT, oldest_key)

        opts = options or CacheSetOptions()
        ttl = opts.ttl_ms if opts.ttl_ms is not None else self._default_ttl

        entry: CacheEntry[HttpResult] = CacheEntry(
            data=result,
            timestamp=now,
            ttl=ttl,
            stale_until=now + ttl + self._stale_window,
        )
        if opts.etag:
            entry.etag = opts.etag
        if opts.last_modified:
            entry.last_modified = opts.last_modified
        if opts.tags:
            entry.tags = list(opts.tags)
        if opts.vary_headers:
            entry.vary_headers = dict(opts.vary_headers)
        entry.needs_revalidation = opts.needs_revalidation

        self._cache[key] = entry
        self._logger.debug(f"LRUCache.set: key={key} ttl={ttl}")
        self._emit(CacheEventType.SET, key, {"ttl": ttl})

    def revalidate(self, request: RequestConfig, ttl_ms: Optional[int] = None) -> bool:
        """
        Refresh timestamp and TTL of an entry after a 304 Not Modified.

        The body, validators and tags are kept.
        """
        key = self.key_for(request)
        entry = self._cache.get(key)
        if entry is None:
            return False

        now = self._clock()
        ttl = ttl_ms if ttl_ms is not None else entry.ttl
        self._cache[key] = replace(
            entry,
            timestamp=now,
            ttl=ttl,
            stale_until=now + ttl + self._stale_window,
        )
        self._cache.move_to_end(key)
        self._emit(CacheEventType.REVALIDATE, key, {"ttl": ttl})
        return True

    def has(self, request: RequestConfig) -> bool:
        """Check if a live entry exists; removes it if hard-expired."""
        key = self.key_for(request)
        entry = self._cache.get(key)
        if entry is None:
            return False

        if self._clock() > entry.stale_until:
            del self._cache[key]
            self._emit(CacheEventType.EXPIRE, key)
            return False

        return True

    def is_stale(self, request: RequestConfig) -> bool:
        """True unless a fresh entry exists."""
        entry = self._cache.get(self.key_for(request))
        if entry is None:
            return True
        return self._clock() > entry.fresh_until

    def delete(self, request: RequestConfig) -> bool:
        return self.delete_by_key(self.key_for(request))

    def delete_by_key(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries and reset counters."""
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._evictions = 0

    def keys(self) -> List[str]:
        """Snapshot of keys, least recently used first."""
        return list(self._cache.keys())

    def get_stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._cache),
            max_size=self._max_entries,
            hits=self._hits,
            misses=self._misses,
            stale_hits=self._stale_hits,
            evictions=self._evictions,
        )

    def get_config(self) -> CacheConfig:
        """Get configuration."""
        return self._config

    def on(self, listener: CacheEventListener) -> Callable[[], None]:
        """Add event listener."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: CacheEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(self, event_type: CacheEventType, key: str, metadata: Optional[dict] = None) -> None:
        if not self._listeners:
            return
        event = CacheEvent(
            type=event_type, key=key, timestamp=self._clock(), metadata=metadata
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                pass  # Ignore listener errors

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        return key in self._cache
