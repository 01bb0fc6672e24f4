"""
Glob pattern matching without regular expressions.

Supports ``*`` (any sequence, including empty) and ``?`` (exactly one
character). Pattern length and recursion depth are capped so hostile patterns
cannot blow up matching time.
"""
from typing import Set, Tuple

MAX_PATTERN_LENGTH = 100
MAX_MATCH_DEPTH = 100

WILDCARDS = ("*", "?")


def has_wildcards(pattern: str) -> bool:
    """Check if a pattern contains glob wildcards."""
    return any(w in pattern for w in WILDCARDS)


def match_glob_pattern(pattern: str, value: str) -> bool:
    """
    Match a glob pattern against a string value.

    Example:
        match_glob_pattern("users/*", "users/123")      # True
        match_glob_pattern("*.json", "data.json")       # True
        match_glob_pattern("user?", "user1")            # True
        match_glob_pattern("api/v1/*", "api/v2/data")   # False
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        return False

    if not has_wildcards(pattern):
        return pattern == value

    return _match_from(pattern, 0, value, 0, 0, set())


def _match_from(
    pattern: str,
    p_idx: int,
    value: str,
    v_idx: int,
    depth: int,
    failed: Set[Tuple[int, int]],
) -> bool:
    if depth > MAX_MATCH_DEPTH:
        return False
    if (p_idx, v_idx) in failed:
        return False

    p_len = len(pattern)
    v_len = len(value)
    start = (p_idx, v_idx)

    while p_idx < p_len and v_idx < v_len:
        p_char = pattern[p_idx]

        if p_char == "*":
            while p_idx < p_len and pattern[p_idx] == "*":
                p_idx += 1

            # Trailing star swallows the rest
            if p_idx == p_len:
                return True

            # Try the star against increasing value offsets
            offset = v_idx
            while offset <= v_len:
                if _match_from(pattern, p_idx, value, offset, depth + 1, failed):
                    return True
                offset += 1

            failed.add(start)
            return False

        if p_char != "?" and p_char != value[v_idx]:
            failed.add(start)
            return False

        p_idx += 1
        v_idx += 1

    while p_idx < p_len and pattern[p_idx] == "*":
        p_idx += 1

    matched = p_idx == p_len and v_idx == v_len
    if not matched:
        failed.add(start)
    return matched
