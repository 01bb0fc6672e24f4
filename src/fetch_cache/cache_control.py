"""
Cache-Control header parsing and cacheability rules.

Numeric directives are converted from seconds to milliseconds. Malformed
numbers leave the directive unset rather than zero.
"""
from email.utils import parsedate_to_datetime
from typing import Mapping, Optional, Union

from .cache_key import get_header_value
from .config import system_clock_ms
from .types import CacheControlDirectives, CacheMode


IMMUTABLE_TTL_MULTIPLIER = 10


def _parse_seconds(value: str) -> Optional[int]:
    try:
        return int(value.strip()) * 1000
    except ValueError:
        return None


def parse_cache_control(header: Optional[str]) -> CacheControlDirectives:
    """Parse Cache-Control header into directives."""
    directives = CacheControlDirectives()

    if not header:
        return directives

    for part in header.lower().split(","):
        part = part.strip()
        if "=" in part:
            key, value = part.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"')
        else:
            key = part
            value = None

        if key == "no-store":
            directives.no_store = True
        elif key == "no-cache":
            directives.no_cache = True
        elif key == "private":
            directives.private = True
        elif key == "public":
            directives.public = True
        elif key == "must-revalidate":
            directives.must_revalidate = True
        elif key == "immutable":
            directives.immutable = True
        elif key == "max-age" and value:
            max_age = _parse_seconds(value)
            if max_age is not None:
                directives.max_age_ms = max_age
        elif key == "s-maxage" and value:
            s_maxage = _parse_seconds(value)
            if s_maxage is not None:
                directives.s_maxage_ms = s_maxage

    return directives


def build_cache_control(directives: CacheControlDirectives) -> str:
    """Build Cache-Control header from directives."""
    parts = []

    if directives.no_store:
        parts.append("no-store")
    if directives.no_cache:
        parts.append("no-cache")
    if directives.private:
        parts.append("private")
    if directives.public:
        parts.append("public")
    if directives.must_revalidate:
        parts.append("must-revalidate")
    if directives.immutable:
        parts.append("immutable")
    if directives.max_age_ms is not None:
        parts.append(f"max-age={directives.max_age_ms // 1000}")
    if directives.s_maxage_ms is not None:
        parts.append(f"s-maxage={directives.s_maxage_ms // 1000}")

    return ", ".join(parts)


def is_cacheable_response(
    directives: CacheControlDirectives, mode: Union[CacheMode, str]
) -> bool:
    """Check if a response may be stored, given its directives and the cache mode."""
    mode = CacheMode(mode)

    if mode in (CacheMode.OFF, CacheMode.MANUAL):
        return False

    if mode == CacheMode.FORCE:
        return not directives.no_store

    if directives.no_store:
        return False

    if directives.max_age_ms is not None or directives.s_maxage_ms is not None:
        return True

    if directives.public:
        return True

    # Client-side cache: private and directive-less responses are cacheable
    return True


def parse_http_date_ms(header: Optional[str]) -> Optional[int]:
    """Parse an HTTP date header to epoch milliseconds."""
    if not header:
        return None
    try:
        return int(parsedate_to_datetime(header).timestamp() * 1000)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def calculate_ttl(
    directives: CacheControlDirectives,
    headers: Optional[Mapping[str, str]],
    default_ttl_ms: int,
    now: Optional[int] = None,
) -> int:
    """
    Calculate the TTL for a response.

    Order: max-age, s-maxage, Expires (clamped to >= 0), immutable
    (10x the default), then the default.
    """
    if directives.max_age_ms is not None:
        return directives.max_age_ms

    if directives.s_maxage_ms is not None:
        return directives.s_maxage_ms

    expires_at = parse_http_date_ms(get_header_value(headers, "Expires"))
    if expires_at is not None:
        if now is None:
            now = system_clock_ms()
        return max(0, expires_at - now)

    if directives.immutable:
        return default_ttl_ms * IMMUTABLE_TTL_MULTIPLIER

    return default_ttl_ms


def needs_revalidation(directives: CacheControlDirectives) -> bool:
    """Check if the next fetch for this entry should be conditional."""
    return directives.no_cache or directives.must_revalidate
