"""
Tests for LRUCache.

Covers the freshness partition, LRU eviction and promotion, revalidation and
events.
"""
import pytest

from conftest import make_success
from fetch_cache.errors import create_http_error
from fetch_cache.lru_cache import LRUCache
from fetch_cache.types import (
    CacheConfig,
    CacheEventType,
    CacheSetOptions,
    HttpFailure,
    RequestConfig,
)


def req(url: str) -> RequestConfig:
    return RequestConfig(method="GET", url=url)


@pytest.fixture
def cache(clock) -> LRUCache:
    return LRUCache(
        CacheConfig(max_entries=3, ttl_ms=1000, stale_while_revalidate_ms=500),
        clock=clock,
    )


class TestLRUCache:
    """Tests for LRUCache."""

    class TestFreshness:
        """Tests for the fresh / stale / expired partition."""

        def test_fresh_at_ttl_boundary(self, cache, clock):
            cache.set(req("/a"), make_success({"a": 1}))
            clock.advance(1000)

            result = cache.get(req("/a"))

            assert result.success
            assert result.data == {"a": 1}
            assert result.response.cached is True
            assert result.response.cache_hit == "fresh"

        def test_stale_inside_window(self, cache, clock):
            cache.set(req("/a"), make_success({"a": 1}))
            clock.advance(1001)

            result = cache.get(req("/a"))

            assert result.response.cache_hit == "stale"
            assert cache.get_stats().stale_hits == 1

        def test_stale_at_window_boundary(self, cache, clock):
            cache.set(req("/a"), make_success({"a": 1}))
            clock.advance(1500)
            assert cache.get(req("/a")).response.cache_hit == "stale"

        def test_expired_is_miss_and_removed(self, cache, clock):
            """Should return None and remove a hard-expired entry."""
            cache.set(req("/a"), make_success({"a": 1}))
            clock.advance(1501)

            assert cache.get(req("/a")) is None
            assert len(cache) == 0
            assert cache.get_stats().misses == 1

        def test_has_removes_expired(self, cache, clock):
            cache.set(req("/a"), make_success({"a": 1}))
            assert cache.has(req("/a"))
            clock.advance(1501)
            assert not cache.has(req("/a"))
            assert "GET|/a" not in cache

        def test_is_stale(self, cache, clock):
            assert cache.is_stale(req("/missing"))
            cache.set(req("/a"), make_success({"a": 1}))
            assert not cache.is_stale(req("/a"))
            clock.advance(1001)
            assert cache.is_stale(req("/a"))

        def test_original_result_is_not_mutated(self, cache):
            result = make_success({"a": 1})
            cache.set(req("/a"), result)
            cache.get(req("/a"))
            assert result.response.cached is False
            assert result.response.cache_hit == "miss"

    class TestEviction:
        """Tests for LRU eviction and promotion."""

        def test_evicts_first_inserted(self, cache):
            for url in ["/1", "/2", "/3", "/4"]:
                cache.set(req(url), make_success(url))

            assert cache.keys() == ["GET|/2", "GET|/3", "GET|/4"]
            assert cache.get_stats().evictions == 1

        def test_get_promotes_entry(self, cache):
            """Should evict the next-oldest key after a get promotes the oldest."""
            for url in ["/1", "/2", "/3"]:
                cache.set(req(url), make_success(url))

            cache.get(req("/1"))
            cache.set(req("/4"), make_success("/4"))

            assert "GET|/1" in cache
            assert "GET|/2" not in cache

        def test_replacing_existing_key_does_not_evict(self, cache):
            for url in ["/1", "/2", "/3"]:
                cache.set(req(url), make_success(url))

            cache.set(req("/1"), make_success("updated"))

            assert len(cache) == 3
            assert cache.get_stats().evictions == 0
            assert cache.get(req("/1")).data == "updated"

    class TestSet:
        """Tests for set."""

        def test_failures_are_never_cached(self, cache):
            cache.set(req("/a"), HttpFailure(error=create_http_error(500)))
            assert len(cache) == 0

        def test_options_override_ttl_and_attach_metadata(self, cache, clock):
            cache.set(
                req("/a"),
                make_success("a"),
                CacheSetOptions(ttl_ms=100, tags=["t"], etag='"v1"', last_modified="yesterday"),
            )

            entry = cache.get_entry(req("/a"))
            assert entry.ttl == 100
            assert entry.stale_until == clock() + 100 + 500
            assert entry.tags == ["t"]
            assert entry.etag == '"v1"'
            assert entry.last_modified == "yesterday"

        def test_custom_key_generator(self, clock):
            cache = LRUCache(key_generator=lambda r: r.url, clock=clock)
            cache.set(req("/a"), make_success("a"))
            assert cache.keys() == ["/a"]

    class TestRevalidate:
        """Tests for revalidate."""

        def test_refreshes_timestamp_and_keeps_body(self, cache, clock):
            cache.set(req("/a"), make_success("body"), CacheSetOptions(etag='"v1"'))
            clock.advance(1200)

            assert cache.revalidate(req("/a"), ttl_ms=2000)

            entry = cache.get_entry(req("/a"))
            assert entry.timestamp == clock()
            assert entry.ttl == 2000
            assert entry.etag == '"v1"'
            assert cache.get(req("/a")).response.cache_hit == "fresh"
            assert cache.get(req("/a")).data == "body"

        def test_missing_entry(self, cache):
            assert cache.revalidate(req("/missing")) is False

    class TestManagement:
        """Tests for delete, clear and stats."""

        def test_delete(self, cache):
            cache.set(req("/a"), make_success("a"))
            assert cache.delete(req("/a"))
            assert not cache.delete(req("/a"))

        def test_clear_resets_counters(self, cache):
            cache.set(req("/a"), make_success("a"))
            cache.get(req("/a"))
            cache.get(req("/b"))

            cache.clear()

            stats = cache.get_stats()
            assert (stats.size, stats.hits, stats.misses, stats.evictions) == (0, 0, 0, 0)
            assert stats.max_size == 3

        def test_stats_count_hits_and_misses(self, cache):
            cache.set(req("/a"), make_success("a"))
            cache.get(req("/a"))
            cache.get(req("/a"))
            cache.get(req("/b"))

            stats = cache.get_stats()
            assert stats.hits == 2
            assert stats.misses == 1
            assert stats.size == 1

        def test_keys_is_a_snapshot(self, cache):
            cache.set(req("/a"), make_success("a"))
            keys = cache.keys()
            cache.clear()
            assert keys == ["GET|/a"]

    class TestEvents:
        """Tests for event listeners."""

        def test_emits_events(self, cache):
            events = []
            cache.on(events.append)

            cache.get(req("/a"))
            cache.set(req("/a"), make_success("a"))
            cache.get(req("/a"))

            assert [e.type for e in events] == [
                CacheEventType.MISS,
                CacheEventType.SET,
                CacheEventType.HIT,
            ]
            assert events[1].key == "GET|/a"

        def test_unsubscribe(self, cache):
            events = []
            unsubscribe = cache.on(events.append)
            unsubscribe()
            cache.get(req("/a"))
            assert events == []

        def test_listener_errors_are_ignored(self, cache):
            def broken(event):
                raise RuntimeError("boom")

            cache.on(broken)
            cache.set(req("/a"), make_success("a"))
            assert cache.get(req("/a")).data == "a"
