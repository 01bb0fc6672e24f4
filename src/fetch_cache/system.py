"""
Cache system: composition root for the LRU cache, SWR wrapper, deduplicator
and tag registry.
"""
import logging
from dataclasses import replace
from functools import partial
from typing import Callable, List, Optional

from .cache_key import extract_vary_headers, generate_cache_key, generate_vary_aware_cache_key
from .config import merge_cache_config
from .deduplicator import Deduplicator
from .lru_cache import LRUCache
from .pattern import match_glob_pattern
from .swr_cache import SWRCache
from .tag_registry import TagRegistry
from .types import (
    CacheConfig,
    CacheEvent,
    CacheEventType,
    CacheMode,
    CacheSetOptions,
    CacheStats,
    Clock,
    HttpResult,
    RequestConfig,
)


class CacheSystem:
    """
    Owns one LRU map, tag registry and in-flight ledger, all keyed the same way.

    With ``vary_headers`` configured, every component uses the vary-aware key,
    so tags and deduplication line up with stored entries. A custom
    ``key_generator`` replaces both.

    Example:
        system = CacheSystem(CacheConfig(ttl_ms=5000, deduplicate=True))
        system.store(request, result, CacheSetOptions(tags=["users"]))
        system.invalidate_by_tag("users")
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = merge_cache_config(config)
        self._logger = logger or logging.getLogger(__name__)
        self._key_generator = self._build_key_generator(self._config)

        self.lru = LRUCache(
            self._config,
            key_generator=self._key_generator,
            clock=clock,
            logger=logger,
        )
        self.swr = SWRCache(self.lru, store=self.store, logger=logger)
        self.deduplicator = Deduplicator(self._key_generator, logger=logger)
        self.tags = TagRegistry()

        # Drop tag registrations when the cache drops the entry on its own
        self.lru.on(self._on_cache_event)

    @staticmethod
    def _build_key_generator(config: CacheConfig) -> Callable[[RequestConfig], str]:
        if config.key_generator is not None:
            return config.key_generator
        if config.vary_headers:
            return partial(
                _vary_key, vary_headers=tuple(config.vary_headers)
            )
        return generate_cache_key

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def mode(self) -> CacheMode:
        return self._config.mode

    @property
    def vary_headers(self) -> List[str]:
        return list(self._config.vary_headers)

    def is_cacheable(self, method: str) -> bool:
        """Check if a request method is cacheable."""
        return method.upper() in self._config.methods

    def cache_key(self, request: RequestConfig) -> str:
        """Key used by every component for this request."""
        return self._key_generator(request)

    def store(
        self,
        request: RequestConfig,
        result: HttpResult,
        options: Optional[CacheSetOptions] = None,
    ) -> None:
        """Store a successful result and register its tags under the same key."""
        if not result.success:
            return

        if self._config.vary_headers:
            options = replace(
                options or CacheSetOptions(),
                vary_headers=extract_vary_headers(request.headers, self._config.vary_headers),
            )

        self.lru.set(request, result, options)

        key = self.cache_key(request)
        self.tags.unregister(key)
        if options is not None and options.tags:
            self.tags.register(key, options.tags)

    def invalidate(self, pattern: str) -> int:
        """
        Remove every entry whose key matches a glob pattern (``*`` and ``?``).

        Returns:
            Number of cache entries removed
        """
        matching = set(self.tags.get_keys_by_pattern(pattern))
        matching.update(k for k in self.lru.keys() if match_glob_pattern(pattern, k))

        removed = 0
        for key in matching:
            if self.lru.delete_by_key(key):
                removed += 1
            self.tags.unregister(key)

        self._logger.debug(f"CacheSystem.invalidate: pattern={pattern} removed={removed}")
        return removed

    def invalidate_by_tag(self, tag: str) -> int:
        """
        Remove every entry registered under a tag.

        Returns:
            Number of cache entries removed
        """
        removed = 0
        for key in self.tags.get_keys_by_tag(tag):
            if self.lru.delete_by_key(key):
                removed += 1
            self.tags.unregister(key)

        self._logger.debug(f"CacheSystem.invalidate_by_tag: tag={tag} removed={removed}")
        return removed

    def clear(self) -> None:
        """Clear cached entries and tag registrations."""
        self.lru.clear()
        self.tags.clear()

    def get_stats(self) -> CacheStats:
        return self.lru.get_stats()

    def _on_cache_event(self, event: CacheEvent) -> None:
        if event.type in (CacheEventType.EVICT, CacheEventType.EXPIRE):
            self.tags.unregister(event.key)


def _vary_key(request: RequestConfig, vary_headers: tuple) -> str:
    return generate_vary_aware_cache_key(request, vary_headers)
