"""
Conditional request helpers (ETag / Last-Modified).
"""
from typing import Dict, Mapping, Optional

from .cache_key import get_header_value
from .types import CacheEntry, CacheSetOptions

IF_NONE_MATCH = "If-None-Match"
IF_MODIFIED_SINCE = "If-Modified-Since"
NOT_MODIFIED = 304


def extract_etag(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Extract ETag from response headers."""
    etag = get_header_value(headers, "ETag")
    return etag.strip() if etag else None


def extract_last_modified(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Extract Last-Modified from response headers."""
    last_modified = get_header_value(headers, "Last-Modified")
    return last_modified.strip() if last_modified else None


def extract_caching_headers(headers: Optional[Mapping[str, str]]) -> CacheSetOptions:
    """Extract validators from a response for storage alongside the entry."""
    return CacheSetOptions(
        etag=extract_etag(headers),
        last_modified=extract_last_modified(headers),
    )


def extract_conditional_headers(entry: CacheEntry) -> Dict[str, str]:
    """Build If-None-Match / If-Modified-Since headers from a stored entry."""
    headers: Dict[str, str] = {}
    if entry.etag:
        headers[IF_NONE_MATCH] = entry.etag
    if entry.last_modified:
        headers[IF_MODIFIED_SINCE] = entry.last_modified
    return headers


def has_conditional_headers(entry: CacheEntry) -> bool:
    """Check if entry carries a validator usable for revalidation."""
    return bool(entry.etag) or bool(entry.last_modified)


def is_not_modified(status: int) -> bool:
    """Check if response is 304 Not Modified."""
    return status == NOT_MODIFIED


def merge_conditional_headers(
    existing_headers: Optional[Mapping[str, str]],
    conditional_headers: Mapping[str, str],
) -> Dict[str, str]:
    """Merge conditional headers into a copy of existing request headers."""
    merged = dict(existing_headers or {})

    for name in (IF_NONE_MATCH, IF_MODIFIED_SINCE):
        value = conditional_headers.get(name)
        if value:
            merged[name] = value

    return merged
