"""
Client-side HTTP caching and resilience for httpx.

LRU/TTL response cache with stale-while-revalidate, conditional revalidation,
tag and pattern invalidation, request deduplication, retry with exponential
backoff and a circuit breaker.
"""
from .types import (
    CacheConfig,
    CacheControlDirectives,
    CacheEntry,
    CacheEvent,
    CacheEventListener,
    CacheEventType,
    CacheMode,
    CacheSetOptions,
    CacheStats,
    CacheStorage,
    CircuitBreakerConfig,
    CircuitState,
    HttpError,
    HttpErrorCode,
    HttpFailure,
    HttpResult,
    HttpSuccess,
    RequestConfig,
    ResponseMeta,
    RetryConfig,
    RetryEvent,
    RetryEventListener,
    RetryExhaustionError,
)
from .config import (
    DEFAULT_CACHE_CONFIG,
    DEFAULT_CIRCUIT_BREAKER_CONFIG,
    DEFAULT_RETRY_CONFIG,
    ClientConfig,
    merge_cache_config,
    merge_circuit_breaker_config,
    merge_retry_config,
)
from .errors import (
    RETRYABLE_STATUS_CODES,
    StorageQuotaExceededError,
    create_http_error,
    create_retry_exhaustion_error,
    is_network_error,
    is_retry_exhaustion_error,
    is_timeout_error,
    map_exception,
)
from .cache_key import generate_cache_key, generate_vary_aware_cache_key
from .cache_control import (
    build_cache_control,
    calculate_ttl,
    is_cacheable_response,
    needs_revalidation,
    parse_cache_control,
)
from .conditional import (
    extract_caching_headers,
    extract_conditional_headers,
    has_conditional_headers,
    is_not_modified,
    merge_conditional_headers,
)
from .pattern import match_glob_pattern
from .tag_registry import TagRegistry
from .lru_cache import LRUCache
from .swr_cache import SWRCache
from .deduplicator import Deduplicator
from .retry import (
    CircuitBreaker,
    RetryStrategy,
    calculate_backoff,
    create_retry_strategy,
    with_retry,
)
from .system import CacheSystem
from .stores import FileStorageBackend, MemoryStorage, PersistentStorage
from .executor import HttpxExecutor
from .client import CachingHttpClient, create_http_client

__version__ = "1.0.0"

__all__ = [
    # Types
    "CacheConfig",
    "CacheControlDirectives",
    "CacheEntry",
    "CacheEvent",
    "CacheEventListener",
    "CacheEventType",
    "CacheMode",
    "CacheSetOptions",
    "CacheStats",
    "CacheStorage",
    "CircuitBreakerConfig",
    "CircuitState",
    "HttpError",
    "HttpErrorCode",
    "HttpFailure",
    "HttpResult",
    "HttpSuccess",
    "RequestConfig",
    "ResponseMeta",
    "RetryConfig",
    "RetryEvent",
    "RetryEventListener",
    "RetryExhaustionError",
    # Config
    "DEFAULT_CACHE_CONFIG",
    "DEFAULT_CIRCUIT_BREAKER_CONFIG",
    "DEFAULT_RETRY_CONFIG",
    "ClientConfig",
    "merge_cache_config",
    "merge_circuit_breaker_config",
    "merge_retry_config",
    # Errors
    "RETRYABLE_STATUS_CODES",
    "StorageQuotaExceededError",
    "create_http_error",
    "create_retry_exhaustion_error",
    "is_network_error",
    "is_retry_exhaustion_error",
    "is_timeout_error",
    "map_exception",
    # Cache
    "generate_cache_key",
    "generate_vary_aware_cache_key",
    "build_cache_control",
    "calculate_ttl",
    "is_cacheable_response",
    "needs_revalidation",
    "parse_cache_control",
    "extract_caching_headers",
    "extract_conditional_headers",
    "has_conditional_headers",
    "is_not_modified",
    "merge_conditional_headers",
    "match_glob_pattern",
    "TagRegistry",
    "LRUCache",
    "SWRCache",
    "Deduplicator",
    "CacheSystem",
    "FileStorageBackend",
    "MemoryStorage",
    "PersistentStorage",
    # Retry
    "CircuitBreaker",
    "RetryStrategy",
    "calculate_backoff",
    "create_retry_strategy",
    "with_retry",
    # Client
    "HttpxExecutor",
    "CachingHttpClient",
    "create_http_client",
]
