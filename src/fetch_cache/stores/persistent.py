"""
Persistent cache storage over a key/value string backend.

Entries are serialized to JSON under a key prefix, so several caches can share
one backend. Entry data must be JSON-serializable.
"""
import base64
import json
import logging
import math
import os
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Union

from ..errors import StorageQuotaExceededError
from ..types import CacheEntry, CacheStorage, T


DEFAULT_KEY_PREFIX = "http-cache:"
DEFAULT_MAX_ENTRIES = 100
QUOTA_EVICTION_RATIO = 0.25

logger = logging.getLogger(__name__)


class StorageBackendProtocol(Protocol):
    """Protocol for a string key/value store with stable enumeration order."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a value. Raises StorageQuotaExceededError when full."""
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


def entry_to_dict(entry: CacheEntry[Any]) -> Dict[str, Any]:
    """Convert a cache entry to a JSON-ready dict."""
    return asdict(entry)


def entry_from_dict(data: Dict[str, Any]) -> CacheEntry[Any]:
    """Rebuild a cache entry from its dict form."""
    return CacheEntry(
        data=data["data"],
        timestamp=int(data["timestamp"]),
        ttl=int(data["ttl"]),
        stale_until=int(data["stale_until"]),
        etag=data.get("etag"),
        last_modified=data.get("last_modified"),
        vary_headers=data.get("vary_headers"),
        tags=data.get("tags"),
    )


class PersistentStorage(CacheStorage[T]):
    """
    Prefix-namespaced storage over a StorageBackendProtocol.

    When full by entry count, the first key in enumeration order is evicted.
    When the backend reports its quota exceeded, a quarter of this storage's
    keys are evicted and the write is retried once; if that also fails the
    write is dropped.
    """

    def __init__(
        self,
        backend: StorageBackendProtocol,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        """
        Create a new PersistentStorage.

        Args:
            backend: String key/value backend
            key_prefix: Prefix for all keys. Default: 'http-cache:'
            max_entries: Maximum number of entries. Default: 100
        """
        self._backend = backend
        self._key_prefix = key_prefix
        self._max_entries = max_entries

    def _get_key(self, key: str) -> str:
        """Get the full key with prefix"""
        return f"{self._key_prefix}{key}"

    def _own_keys(self) -> List[str]:
        return [k for k in self._backend.keys() if k.startswith(self._key_prefix)]

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        full_key = self._get_key(key)
        raw = self._backend.get_item(full_key)
        if raw is None:
            return None

        try:
            return entry_from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as error:
            logger.warning(f"PersistentStorage.get: removing corrupted entry key={key}: {error}")
            self._backend.remove_item(full_key)
            return None

    def set(self, key: str, entry: CacheEntry[T]) -> None:
        full_key = self._get_key(key)
        payload = json.dumps(entry_to_dict(entry))

        own_keys = self._own_keys()
        if full_key not in own_keys and len(own_keys) >= self._max_entries:
            self._backend.remove_item(own_keys[0])

        try:
            self._backend.set_item(full_key, payload)
        except StorageQuotaExceededError:
            self._evict_for_quota()
            try:
                self._backend.set_item(full_key, payload)
            except StorageQuotaExceededError:
                logger.warning(f"PersistentStorage.set: quota exceeded, dropping key={key}")

    def _evict_for_quota(self) -> None:
        own_keys = self._own_keys()
        count = math.ceil(len(own_keys) * QUOTA_EVICTION_RATIO)
        for full_key in own_keys[:count]:
            self._backend.remove_item(full_key)
        logger.debug(f"PersistentStorage: evicted {count} entries after quota error")

    def delete(self, key: str) -> bool:
        full_key = self._get_key(key)
        if self._backend.get_item(full_key) is None:
            return False
        self._backend.remove_item(full_key)
        return True

    def clear(self) -> None:
        """Remove this storage's keys; other prefixes are left alone."""
        for full_key in self._own_keys():
            self._backend.remove_item(full_key)

    def has(self, key: str) -> bool:
        return self._backend.get_item(self._get_key(key)) is not None

    def keys(self) -> Iterator[str]:
        prefix_len = len(self._key_prefix)
        return iter([k[prefix_len:] for k in self._own_keys()])

    @property
    def size(self) -> int:
        return len(self._own_keys())


class FileStorageBackend:
    """
    One file per key in a directory. Enumeration follows write order.

    Key names are base64url-encoded into file names so any string is a valid
    key.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path], max_bytes: Optional[int] = None) -> None:
        """
        Args:
            directory: Directory holding the entry files; created if missing
            max_bytes: Total byte quota across all files. Default: unlimited
        """
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._max_bytes = max_bytes

    def _path(self, key: str) -> Path:
        encoded = base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii")
        return self._dir / f"{encoded}{self.SUFFIX}"

    @staticmethod
    def _decode(path: Path) -> str:
        return base64.urlsafe_b64decode(path.stem.encode("ascii")).decode("utf-8")

    def _files(self) -> List[Path]:
        files = [p for p in self._dir.iterdir() if p.suffix == self.SUFFIX]
        return sorted(files, key=lambda p: (p.stat().st_mtime_ns, p.name))

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        data = value.encode("utf-8")

        if self._max_bytes is not None:
            used = sum(p.stat().st_size for p in self._files() if p != path)
            if used + len(data) > self._max_bytes:
                raise StorageQuotaExceededError(
                    f"Writing {len(data)} bytes would exceed quota of {self._max_bytes}"
                )

        # mtime orders enumeration; rewrites keep their original position
        files = self._files()
        if path.exists():
            stamp = path.stat().st_mtime_ns
        else:
            latest = files[-1].stat().st_mtime_ns if files else 0
            stamp = max(time.time_ns(), latest + 1)
        path.write_bytes(data)
        os.utime(path, ns=(stamp, stamp))

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> List[str]:
        return [self._decode(p) for p in self._files()]
