"""
Tests for cache storage adapters.
"""
import json
from typing import Dict, List, Optional

import pytest

from fetch_cache.errors import StorageQuotaExceededError
from fetch_cache.stores import (
    FileStorageBackend,
    MemoryStorage,
    PersistentStorage,
    entry_from_dict,
    entry_to_dict,
)
from fetch_cache.types import CacheEntry


def make_entry(data="x", timestamp=0) -> CacheEntry:
    return CacheEntry(data=data, timestamp=timestamp, ttl=1000, stale_until=timestamp + 2000, tags=["t"])


class DictBackend:
    """In-memory StorageBackendProtocol with an optional entry quota."""

    def __init__(self, quota: Optional[int] = None) -> None:
        self.items: Dict[str, str] = {}
        self.quota = quota
        self.set_calls = 0

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.set_calls += 1
        if self.quota is not None and key not in self.items and len(self.items) >= self.quota:
            raise StorageQuotaExceededError("full")
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self.items.keys())


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_basic_operations(self):
        storage = MemoryStorage()
        storage.set("a", make_entry("a"))

        assert storage.has("a")
        assert storage.get("a").data == "a"
        assert storage.size == 1
        assert list(storage.keys()) == ["a"]
        assert storage.delete("a")
        assert not storage.delete("a")
        assert storage.get("a") is None

    def test_lru_eviction(self):
        storage = MemoryStorage(max_entries=2)
        storage.set("a", make_entry())
        storage.set("b", make_entry())
        storage.get("a")
        storage.set("c", make_entry())

        assert sorted(storage.keys()) == ["a", "c"]

    def test_clear(self):
        storage = MemoryStorage()
        storage.set("a", make_entry())
        storage.clear()
        assert storage.size == 0


class TestEntrySerialization:
    def test_dict_form(self):
        entry = make_entry({"id": 1})
        restored = entry_from_dict(json.loads(json.dumps(entry_to_dict(entry))))
        assert restored == entry


class TestPersistentStorage:
    """Tests for PersistentStorage."""

    def test_prefixes_keys(self):
        backend = DictBackend()
        storage = PersistentStorage(backend)
        storage.set("GET|/a", make_entry({"id": 1}))

        assert list(backend.items) == ["http-cache:GET|/a"]
        assert storage.get("GET|/a").data == {"id": 1}
        assert list(storage.keys()) == ["GET|/a"]

    def test_ignores_foreign_keys(self):
        backend = DictBackend()
        backend.items["other:key"] = "value"
        storage = PersistentStorage(backend)
        storage.set("a", make_entry())

        assert storage.size == 1
        storage.clear()
        assert backend.items == {"other:key": "value"}

    def test_evicts_first_enumerated_at_capacity(self):
        storage = PersistentStorage(DictBackend(), max_entries=2)
        storage.set("a", make_entry())
        storage.set("b", make_entry())
        storage.set("c", make_entry())

        assert list(storage.keys()) == ["b", "c"]

    def test_overwrite_at_capacity_does_not_evict(self):
        storage = PersistentStorage(DictBackend(), max_entries=2)
        storage.set("a", make_entry())
        storage.set("b", make_entry())
        storage.set("a", make_entry("new"))

        assert sorted(storage.keys()) == ["a", "b"]

    def test_quota_recovery_evicts_quarter_and_retries(self):
        backend = DictBackend(quota=4)
        storage = PersistentStorage(backend, max_entries=100)
        for key in "abcd":
            storage.set(key, make_entry())

        storage.set("e", make_entry())

        assert list(storage.keys()) == ["b", "c", "d", "e"]

    def test_quota_failure_after_retry_is_dropped(self):
        backend = DictBackend(quota=0)
        storage = PersistentStorage(backend)

        storage.set("a", make_entry())

        assert storage.size == 0
        assert backend.set_calls == 2

    def test_corrupted_entry_is_removed(self):
        backend = DictBackend()
        backend.items["http-cache:a"] = "{not json"
        storage = PersistentStorage(backend)

        assert storage.get("a") is None
        assert "http-cache:a" not in backend.items

    def test_delete_and_has(self):
        storage = PersistentStorage(DictBackend())
        storage.set("a", make_entry())
        assert storage.has("a")
        assert storage.delete("a")
        assert not storage.delete("a")
        assert not storage.has("a")


class TestFileStorageBackend:
    """Tests for FileStorageBackend."""

    def test_round_trip(self, tmp_path):
        backend = FileStorageBackend(tmp_path / "cache")
        backend.set_item("GET|/users?x=1", "value")

        assert backend.get_item("GET|/users?x=1") == "value"
        assert backend.keys() == ["GET|/users?x=1"]

        backend.remove_item("GET|/users?x=1")
        assert backend.get_item("GET|/users?x=1") is None
        backend.remove_item("missing")

    def test_enumeration_follows_write_order(self, tmp_path):
        backend = FileStorageBackend(tmp_path)
        for key in ["c", "a", "b"]:
            backend.set_item(key, key)
        backend.set_item("c", "rewritten")

        assert backend.keys() == ["c", "a", "b"]

    def test_quota(self, tmp_path):
        backend = FileStorageBackend(tmp_path, max_bytes=10)
        backend.set_item("a", "12345")

        with pytest.raises(StorageQuotaExceededError):
            backend.set_item("b", "123456")

        backend.set_item("a", "1234567890")
        assert backend.get_item("a") == "1234567890"

    def test_persistent_storage_over_files(self, tmp_path):
        storage = PersistentStorage(FileStorageBackend(tmp_path), max_entries=2)
        storage.set("a", make_entry({"id": 1}))
        storage.set("b", make_entry({"id": 2}))
        storage.set("c", make_entry({"id": 3}))

        reopened = PersistentStorage(FileStorageBackend(tmp_path))
        assert list(reopened.keys()) == ["b", "c"]
        assert reopened.get("c").data == {"id": 3}
