"""
Cache tag registry for grouped invalidation.

Keeps tag -> keys and key -> tags indices in step so both invalidating a tag
and dropping a key cost time proportional to that key's tags.
"""
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Set

from .pattern import match_glob_pattern


class TagRegistry:
    """
    Bidirectional index between tags and cache keys.

    Example:
        registry = TagRegistry()
        registry.register("GET|/users/1", ["users", "user:1"])
        registry.get_keys_by_tag("users")        # {"GET|/users/1"}
        registry.get_keys_by_pattern("GET|/users/*")
    """

    def __init__(self) -> None:
        self._tag_to_keys: Dict[str, Set[str]] = {}
        self._key_to_tags: Dict[str, Set[str]] = {}
        self._all_keys: Set[str] = set()

    def register(self, key: str, tags: Iterable[str]) -> None:
        """Register a cache key with its tags. Empty tag lists are ignored."""
        tags = list(tags)
        if not tags:
            return

        self._all_keys.add(key)
        existing_tags = self._key_to_tags.setdefault(key, set())

        for tag in tags:
            self._tag_to_keys.setdefault(tag, set()).add(key)
            existing_tags.add(tag)

    def unregister(self, key: str) -> None:
        """Remove a key from every tag group it belongs to."""
        tags = self._key_to_tags.pop(key, None)
        self._all_keys.discard(key)
        if not tags:
            return

        for tag in tags:
            keys_for_tag = self._tag_to_keys.get(tag)
            if keys_for_tag is None:
                continue
            keys_for_tag.discard(key)
            if not keys_for_tag:
                del self._tag_to_keys[tag]

    def get_keys_by_tag(self, tag: str) -> AbstractSet[str]:
        """Get all keys for a tag (a snapshot; empty if unknown)."""
        return frozenset(self._tag_to_keys.get(tag, ()))

    def get_tags(self, key: str) -> FrozenSet[str]:
        """Get the tags registered for a key."""
        return frozenset(self._key_to_tags.get(key, ()))

    def get_keys_by_pattern(self, pattern: str) -> List[str]:
        """Get all registered keys matching a glob pattern."""
        return [key for key in self._all_keys if match_glob_pattern(pattern, key)]

    def clear(self) -> None:
        """Clear all registrations."""
        self._tag_to_keys.clear()
        self._key_to_tags.clear()
        self._all_keys.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._all_keys

    def __len__(self) -> int:
        return len(self._all_keys)
