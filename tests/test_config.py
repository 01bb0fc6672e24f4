"""
Tests for configuration defaults and merging.
"""
from fetch_cache.config import (
    DEFAULT_CACHE_CONFIG,
    ClientConfig,
    merge_cache_config,
    merge_circuit_breaker_config,
    merge_retry_config,
    system_clock_ms,
)
from fetch_cache.types import CacheConfig, CacheMode, CircuitBreakerConfig, RetryConfig


class TestMergeCacheConfig:
    """Tests for merge_cache_config."""

    def test_defaults(self):
        config = merge_cache_config()
        assert config.max_entries == 100
        assert config.ttl_ms == 60000
        assert config.stale_while_revalidate_ms == 0
        assert config.deduplicate is False
        assert config.mode == CacheMode.STANDARD
        assert config.vary_headers == []
        assert config.methods == ["GET", "HEAD"]

    def test_returns_copy(self):
        config = merge_cache_config()
        config.methods.append("POST")
        assert DEFAULT_CACHE_CONFIG.methods == ["GET", "HEAD"]

    def test_coerces_mode_and_methods(self):
        config = merge_cache_config(CacheConfig(mode="FORCE", methods=["get"]))
        assert config.mode == CacheMode.FORCE
        assert config.methods == ["GET"]

    def test_invalid_max_entries_falls_back(self):
        assert merge_cache_config(CacheConfig(max_entries=0)).max_entries == 100


class TestMergeRetryConfig:
    """Tests for merge_retry_config."""

    def test_defaults(self):
        config = merge_retry_config()
        assert config.max_retries == 3
        assert config.retry_on == [408, 429, 500, 502, 503, 504]
        assert config.base_delay_ms == 1000
        assert config.max_delay_ms == 30000
        assert config.jitter == 0.1

    def test_clamps_jitter(self):
        assert merge_retry_config(RetryConfig(jitter=5)).jitter == 1.0
        assert merge_retry_config(RetryConfig(jitter=-1)).jitter == 0.0


class TestMergeCircuitBreakerConfig:
    def test_defaults(self):
        config = merge_circuit_breaker_config()
        assert config.failure_threshold == 5
        assert config.recovery_timeout_ms == 60000

    def test_threshold_at_least_one(self):
        assert merge_circuit_breaker_config(CircuitBreakerConfig(failure_threshold=0)).failure_threshold == 1


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert config.base_url == ""
        assert config.timeout_ms == 30000
        assert config.cache is None
        assert config.retry is None

    def test_system_clock_is_milliseconds(self):
        assert system_clock_ms() > 1_600_000_000_000
