"""
Configuration defaults and merge helpers for fetch_cache.
"""
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .errors import RETRYABLE_STATUS_CODES
from .types import CacheConfig, CacheMode, CircuitBreakerConfig, RetryConfig


DEFAULT_CACHEABLE_METHODS = ["GET", "HEAD"]

DEFAULT_CACHE_CONFIG = CacheConfig(
    max_entries=100,
    ttl_ms=60000,  # 1 minute
    stale_while_revalidate_ms=0,
    deduplicate=False,
    mode=CacheMode.STANDARD,
    vary_headers=[],
    methods=list(DEFAULT_CACHEABLE_METHODS),
)

DEFAULT_RETRY_CONFIG = RetryConfig(
    max_retries=3,
    retry_on=list(RETRYABLE_STATUS_CODES),
    base_delay_ms=1000,
    max_delay_ms=30000,
    jitter=0.1,
)

DEFAULT_CIRCUIT_BREAKER_CONFIG = CircuitBreakerConfig(
    failure_threshold=5,
    recovery_timeout_ms=60000,  # 1 minute
)


@dataclass
class ClientConfig:
    """Configuration for CachingHttpClient."""

    base_url: str = ""
    """Prefix for relative request URLs."""

    headers: Dict[str, str] = field(default_factory=dict)
    """Headers sent with every request."""

    timeout_ms: int = 30000
    """Per-attempt timeout enforced by the executor. Default: 30000"""

    cache: Union[CacheConfig, bool, None] = None
    """Cache config; False disables caching, None uses defaults."""

    retry: Union[RetryConfig, bool, None] = None
    """Retry config; False or None disables client-wide retry."""

    circuit_breaker: Optional[CircuitBreakerConfig] = None
    """Wrap every attempt in a circuit breaker when set."""


def system_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _coerce_mode(mode: Union[CacheMode, str, None]) -> CacheMode:
    if mode is None:
        return DEFAULT_CACHE_CONFIG.mode
    return mode if isinstance(mode, CacheMode) else CacheMode(str(mode).lower())


def merge_cache_config(config: Optional[CacheConfig] = None) -> CacheConfig:
    """Merge user config with defaults."""
    if config is None:
        config = DEFAULT_CACHE_CONFIG

    methods: List[str] = config.methods if config.methods else DEFAULT_CACHEABLE_METHODS
    return CacheConfig(
        max_entries=config.max_entries
        if config.max_entries is not None and config.max_entries > 0
        else DEFAULT_CACHE_CONFIG.max_entries,
        ttl_ms=config.ttl_ms if config.ttl_ms is not None else DEFAULT_CACHE_CONFIG.ttl_ms,
        stale_while_revalidate_ms=config.stale_while_revalidate_ms or 0,
        deduplicate=bool(config.deduplicate),
        mode=_coerce_mode(config.mode),
        vary_headers=list(config.vary_headers or []),
        methods=[m.upper() for m in methods],
        key_generator=config.key_generator,
        tags=dict(config.tags or {}),
    )


def merge_retry_config(config: Optional[RetryConfig] = None) -> RetryConfig:
    """Merge user config with defaults."""
    if config is None:
        config = DEFAULT_RETRY_CONFIG

    return RetryConfig(
        max_retries=config.max_retries
        if config.max_retries is not None
        else DEFAULT_RETRY_CONFIG.max_retries,
        retry_on=list(config.retry_on)
        if config.retry_on is not None
        else list(DEFAULT_RETRY_CONFIG.retry_on),
        base_delay_ms=config.base_delay_ms
        if config.base_delay_ms is not None
        else DEFAULT_RETRY_CONFIG.base_delay_ms,
        max_delay_ms=config.max_delay_ms
        if config.max_delay_ms is not None
        else DEFAULT_RETRY_CONFIG.max_delay_ms,
        jitter=min(max(config.jitter, 0.0), 1.0)
        if config.jitter is not None
        else DEFAULT_RETRY_CONFIG.jitter,
        should_retry=config.should_retry,
    )


def merge_circuit_breaker_config(
    config: Optional[CircuitBreakerConfig] = None,
) -> CircuitBreakerConfig:
    """Merge user config with defaults."""
    if config is None:
        config = DEFAULT_CIRCUIT_BREAKER_CONFIG

    return CircuitBreakerConfig(
        failure_threshold=max(1, config.failure_threshold),
        recovery_timeout_ms=max(0, config.recovery_timeout_ms),
    )
