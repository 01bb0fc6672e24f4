"""
Caching HTTP client facade.

Request flow for a cacheable request:

    cache lookup -> (SWR | dedupe) -> conditional fetch -> retry -> circuit
    breaker -> HttpxExecutor -> store with tags

Non-cacheable requests skip straight to retry.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

import httpx

from .cache_control import calculate_ttl, is_cacheable_response, parse_cache_control
from .cache_key import get_header_value
from .conditional import (
    extract_caching_headers,
    extract_conditional_headers,
    has_conditional_headers,
    is_not_modified,
    merge_conditional_headers,
)
from .config import ClientConfig, system_clock_ms
from .executor import HttpxExecutor
from .lru_cache import mark_cache_hit
from .retry.circuit_breaker import CircuitBreaker
from .retry.strategy import RetryStrategy
from .system import CacheSystem
from .types import (
    CacheConfig,
    CacheMode,
    CacheSetOptions,
    CacheStats,
    Clock,
    HttpResult,
    RequestConfig,
    RetryConfig,
)


class CachingHttpClient:
    """
    HTTP client with response caching, deduplication, retry and an optional
    circuit breaker. Every call returns an HttpResult; nothing is raised for
    HTTP or transport failures.

    Example:
        async with CachingHttpClient(ClientConfig(
            base_url="https://api.example.com",
            cache=CacheConfig(ttl_ms=30000, deduplicate=True),
            retry=RetryConfig(max_retries=2),
        )) as client:
            result = await client.get("/users", params={"page": 1}, cache_tags=["users"])
            if result.success:
                print(result.data)

            client.invalidate_by_tag("users")
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Create a new CachingHttpClient.

        Args:
            config: Client configuration. Default: ClientConfig()
            transport: httpx transport for the owned client (tests, proxies)
            client: Existing httpx client to share; it is not closed by aclose()
            clock: Millisecond clock for cache freshness. Default: wall clock
            logger: Logger. Default: module logger
        """
        self._config = config or ClientConfig()
        self._clock = clock or system_clock_ms
        self._logger = logger or logging.getLogger(__name__)

        self._executor = HttpxExecutor(
            client,
            base_url=self._config.base_url,
            timeout_ms=self._config.timeout_ms,
            transport=transport,
            logger=logger,
        )

        self._cache: Optional[CacheSystem] = None
        cache_config = self._resolve_cache_config(self._config.cache)
        if cache_config is not None:
            self._cache = CacheSystem(cache_config, clock=self._clock, logger=logger)

        self._retry: Optional[RetryStrategy] = None
        retry_config = self._resolve_retry_config(self._config.retry)
        if retry_config is not None:
            self._retry = RetryStrategy(retry_config, logger=logger)

        self._breaker: Optional[CircuitBreaker] = None
        if self._config.circuit_breaker is not None:
            self._breaker = CircuitBreaker(
                self._config.circuit_breaker, clock=self._clock, logger=logger
            )

    @staticmethod
    def _resolve_cache_config(cache: Any) -> Optional[CacheConfig]:
        if cache is False:
            return None
        if cache is None or cache is True:
            return CacheConfig()
        return cache

    @staticmethod
    def _resolve_retry_config(retry: Any) -> Optional[RetryConfig]:
        if retry is None or retry is False:
            return None
        if retry is True:
            return RetryConfig()
        return retry

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cache(self) -> Optional[CacheSystem]:
        return self._cache

    @property
    def circuit_breaker(self) -> Optional[CircuitBreaker]:
        return self._breaker

    # HTTP methods

    async def get(self, url: str, **options: Any) -> HttpResult:
        return await self.request("GET", url, **options)

    async def head(self, url: str, **options: Any) -> HttpResult:
        return await self.request("HEAD", url, **options)

    async def post(self, url: str, body: Any = None, **options: Any) -> HttpResult:
        return await self.request("POST", url, body=body, **options)

    async def put(self, url: str, body: Any = None, **options: Any) -> HttpResult:
        return await self.request("PUT", url, body=body, **options)

    async def patch(self, url: str, body: Any = None, **options: Any) -> HttpResult:
        return await self.request("PATCH", url, body=body, **options)

    async def delete(self, url: str, **options: Any) -> HttpResult:
        return await self.request("DELETE", url, **options)

    async def options(self, url: str, **options: Any) -> HttpResult:
        return await self.request("OPTIONS", url, **options)

    async def request(self, method: str, url: str, **options: Any) -> HttpResult:
        """
        Send a request.

        Keyword options are RequestConfig fields: params, headers, body,
        timeout_ms, cache_ttl_ms, cache_tags, no_cache, force_revalidate,
        no_retry, retry, request_id.
        """
        headers = {**self._config.headers, **(options.pop("headers", None) or {})}
        request = RequestConfig(method=method.upper(), url=url, headers=headers, **options)
        return await self.send(request)

    async def send(self, request: RequestConfig) -> HttpResult:
        """Send a fully built RequestConfig through the cache and retry layers."""
        cache = self._cache
        if cache is None or request.no_cache or not self._is_cacheable(cache, request):
            return await self._execute_core(request)

        if request.force_revalidate:
            return await self._fetch_and_store(request)

        config = cache.config

        entry = cache.lru.get_entry(request)
        if entry is not None and entry.needs_revalidation:
            self._logger.debug(f"CachingHttpClient.send: revalidating no-cache entry url={request.url}")
            if config.deduplicate:
                return await cache.deduplicator.dedupe(
                    request, lambda: self._fetch_and_store(request)
                )
            return await self._fetch_and_store(request)

        if config.stale_while_revalidate_ms > 0:
            async def fetch() -> HttpResult:
                if config.deduplicate:
                    return await cache.deduplicator.dedupe(
                        request, lambda: self._fetch_for_cache(request)
                    )
                return await self._fetch_for_cache(request)

            return await cache.swr.get_with_revalidation(
                request, fetch, lambda result: self._build_set_options(request, result)
            )

        cached = cache.lru.get(request)
        if cached is not None:
            return cached

        if config.deduplicate:
            return await cache.deduplicator.dedupe(
                request, lambda: self._fetch_and_store(request)
            )

        return await self._fetch_and_store(request)

    @staticmethod
    def _is_cacheable(cache: CacheSystem, request: RequestConfig) -> bool:
        if cache.mode in (CacheMode.OFF, CacheMode.MANUAL):
            return False
        return cache.is_cacheable(request.method)

    async def _fetch_and_store(self, request: RequestConfig) -> HttpResult:
        result = await self._fetch_for_cache(request)
        options = self._build_set_options(request, result)
        if options is not None and self._cache is not None:
            self._cache.store(request, result, options)
        return result

    async def _fetch_for_cache(self, request: RequestConfig) -> HttpResult:
        """Fetch, revalidating conditionally when a stored entry has validators."""
        assert self._cache is not None
        lru = self._cache.lru
        entry = lru.get_entry(request)

        if entry is None or not has_conditional_headers(entry):
            return await self._execute_core(request)

        conditional_request = replace(
            request,
            headers=merge_conditional_headers(
                request.headers, extract_conditional_headers(entry)
            ),
        )
        result = await self._execute_core(conditional_request)

        if not (result.success and is_not_modified(result.response.status)):
            return result

        ttl = request.cache_ttl_ms
        if ttl is None and self._cache.mode == CacheMode.STANDARD:
            ttl = self._response_ttl(result.response.headers)

        if lru.revalidate(request, ttl):
            self._logger.debug(f"CachingHttpClient: 304 Not Modified, refreshed url={request.url}")
            return mark_cache_hit(entry.data, "fresh")

        # Entry vanished while the request was in flight
        return await self._execute_core(request)

    def _response_ttl(self, headers: Dict[str, str]) -> int:
        directives = parse_cache_control(get_header_value(headers, "Cache-Control"))
        assert self._cache is not None
        return calculate_ttl(directives, headers, self._cache.config.ttl_ms, now=self._clock())

    def _build_set_options(
        self, request: RequestConfig, result: HttpResult
    ) -> Optional[CacheSetOptions]:
        """Set options for a fetched result; None when it must not be stored."""
        if not result.success or result.response.cached or self._cache is None:
            return None

        headers = result.response.headers
        mode = self._cache.mode
        directives = parse_cache_control(get_header_value(headers, "Cache-Control"))
        if not is_cacheable_response(directives, mode):
            self._logger.debug(f"CachingHttpClient: response not cacheable url={request.url}")
            return None

        options = extract_caching_headers(headers)

        if request.cache_ttl_ms is not None:
            options.ttl_ms = request.cache_ttl_ms
        elif mode == CacheMode.STANDARD:
            options.ttl_ms = self._response_ttl(headers)

        if mode == CacheMode.STANDARD:
            options.needs_revalidation = directives.no_cache

        tags: List[str] = list(request.cache_tags or [])
        for tag_fn in self._cache.config.tags.values():
            tags.extend(tag_fn(request))
        if tags:
            options.tags = tags

        return options

    async def _execute_core(self, request: RequestConfig) -> HttpResult:
        """One logical request: retry around circuit breaker around one attempt."""
        strategy = None
        if not request.no_retry:
            if request.retry is not None:
                strategy = RetryStrategy(request.retry, logger=self._logger)
            else:
                strategy = self._retry

        if strategy is None:
            return await self._attempt(request)
        return await strategy.execute(lambda: self._attempt(request))

    async def _attempt(self, request: RequestConfig) -> HttpResult:
        if self._breaker is not None:
            return await self._breaker.execute(lambda: self._executor.execute(request))
        return await self._executor.execute(request)

    # Fluent configuration; each returns a new client with its own cache that
    # shares this client's connection pool

    def with_config(self, **changes: Any) -> "CachingHttpClient":
        return CachingHttpClient(
            replace(self._config, **changes),
            client=self._executor.client,
            clock=self._clock,
            logger=self._logger,
        )

    def with_headers(self, headers: Dict[str, str]) -> "CachingHttpClient":
        return self.with_config(headers={**self._config.headers, **headers})

    def with_timeout(self, timeout_ms: int) -> "CachingHttpClient":
        return self.with_config(timeout_ms=timeout_ms)

    def with_retry(self, retry: RetryConfig) -> "CachingHttpClient":
        return self.with_config(retry=retry)

    def no_cache(self) -> "CachingHttpClient":
        return self.with_config(cache=False)

    def no_retry(self) -> "CachingHttpClient":
        return self.with_config(retry=False)

    # Cache management

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def get_cache_stats(self) -> CacheStats:
        if self._cache is None:
            return CacheStats(size=0, max_size=0)
        return self._cache.get_stats()

    def invalidate_cache(self, pattern: str) -> int:
        """Remove cached entries whose key matches a glob pattern."""
        if self._cache is None:
            return 0
        return self._cache.invalidate(pattern)

    def invalidate_by_tag(self, tag: str) -> int:
        if self._cache is None:
            return 0
        return self._cache.invalidate_by_tag(tag)

    async def wait_for_revalidations(self) -> None:
        """Wait for background stale-while-revalidate refreshes to settle."""
        if self._cache is not None:
            await self._cache.swr.wait_for_revalidations()

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def __aenter__(self) -> "CachingHttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def create_http_client(
    config: Optional[ClientConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger: Optional[logging.Logger] = None,
) -> CachingHttpClient:
    """Create a new CachingHttpClient."""
    return CachingHttpClient(config, transport=transport, logger=logger)
