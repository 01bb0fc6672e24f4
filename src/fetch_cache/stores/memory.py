"""
In-memory cache storage with LRU ordering.
"""
from collections import OrderedDict
from typing import Iterator, Optional

from ..types import CacheEntry, CacheStorage, T


class MemoryStorage(CacheStorage[T]):
    """
    In-memory storage. Reads move a key to the most-recently-used end and
    writes beyond ``max_entries`` evict the least recently used key.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._max_entries = max_entries

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def set(self, key: str, entry: CacheEntry[T]) -> None:
        if key in self._entries:
            del self._entries[key]
        elif self._max_entries is not None and len(self._entries) >= self._max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = entry

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def has(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries.keys()))

    @property
    def size(self) -> int:
        return len(self._entries)
