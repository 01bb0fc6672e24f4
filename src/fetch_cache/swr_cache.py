"""
Stale-while-revalidate on top of the LRU cache.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set, Union

from .lru_cache import LRUCache
from .types import CacheSetOptions, HttpResult, RequestConfig

SetOptions = Union[
    CacheSetOptions,
    Callable[[HttpResult], Optional[CacheSetOptions]],
    None,
]
"""Fixed set options, or a function deriving them from a fetched result."""


class SWRCache:
    """
    Serves stale entries immediately while refreshing them in the background.

    Background refreshes follow an at-most-once store, best-effort policy:
    a successful refresh replaces the entry, a failed one is logged and
    dropped so the stale entry stays authoritative. Only one refresh per key
    runs at a time, and refreshes are never cancelled once started.
    """

    def __init__(
        self,
        cache: LRUCache,
        *,
        store: Optional[Callable[[RequestConfig, HttpResult, Optional[CacheSetOptions]], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._cache = cache
        self._store_fn = store or cache.set
        self._logger = logger or logging.getLogger(__name__)
        self._revalidating: Set[str] = set()
        self._tasks: Set["asyncio.Task[None]"] = set()

    async def get_with_revalidation(
        self,
        request: RequestConfig,
        revalidate: Callable[[], Awaitable[HttpResult]],
        options: SetOptions = None,
    ) -> HttpResult:
        """
        Return cached data (fresh or stale) or fetch it on a miss.

        When ``options`` is a function it is called with each successful
        fetched result; returning None skips storing that result.
        """
        cached = self._cache.get(request)

        if cached is None:
            result = await revalidate()
            self._store(request, result, options)
            return result

        if cached.response.cache_hit == "fresh":
            return cached

        key = self._cache.key_for(request)
        if key not in self._revalidating:
            self._revalidating.add(key)
            self._logger.debug(
                f"SWRCache.get_with_revalidation: revalidating in background url={request.url}"
            )
            task = asyncio.ensure_future(
                self._revalidate_in_background(key, request, revalidate, options)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return cached

    async def _revalidate_in_background(
        self,
        key: str,
        request: RequestConfig,
        revalidate: Callable[[], Awaitable[HttpResult]],
        options: SetOptions,
    ) -> None:
        try:
            result = await revalidate()
            if result.success:
                self._store(request, result, options)
            else:
                self._logger.debug(
                    f"SWRCache: background revalidation failed key={key} code={result.error.code.value}"
                )
        except Exception as error:
            # Stale data has already been served
            self._logger.debug(f"SWRCache: background revalidation raised key={key} error={error!r}")
        finally:
            self._revalidating.discard(key)

    def _store(self, request: RequestConfig, result: HttpResult, options: SetOptions) -> None:
        if not result.success:
            return
        if callable(options):
            options = options(result)
            if options is None:
                return
        self._store_fn(request, result, options)

    def is_revalidating(self, request: RequestConfig) -> bool:
        return self._cache.key_for(request) in self._revalidating

    def get_revalidating_count(self) -> int:
        return len(self._revalidating)

    async def wait_for_revalidations(self) -> None:
        """Wait until every background revalidation started so far has settled."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
