"""
Cache key generation.

Keys are ``METHOD|url[|sorted params][|vary[...]]`` strings so that the same
logical request always maps to the same key regardless of parameter order.
"""
from typing import Dict, Mapping, Optional, Sequence

from .types import RequestConfig


def format_param(value: object) -> str:
    """Render a param value the way it appears in keys and query strings."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def generate_cache_key(config: RequestConfig) -> str:
    """Generate cache key from method, URL and sorted query params."""
    parts = [config.method.upper(), config.url]

    if config.params:
        sorted_params = "&".join(
            f"{k}={format_param(v)}"
            for k, v in sorted(config.params.items())
            if v is not None
        )
        if sorted_params:
            parts.append(sorted_params)

    return "|".join(parts)


def get_header_value(
    headers: Optional[Mapping[str, str]], key: str
) -> Optional[str]:
    """Get header value case-insensitively."""
    if not headers:
        return None
    if key in headers:
        return headers[key]
    lower_key = key.lower()
    for k, v in headers.items():
        if k.lower() == lower_key:
            return v
    return None


def extract_vary_headers(
    headers: Optional[Mapping[str, str]], vary_headers: Sequence[str]
) -> Dict[str, str]:
    """Extract the values of the vary headers (missing ones map to '')."""
    return {
        header: get_header_value(headers, header) or ""
        for header in vary_headers
    }


def generate_vary_aware_cache_key(
    config: RequestConfig, vary_headers: Sequence[str]
) -> str:
    """
    Generate a cache key that includes selected request header values.

    For authenticated endpoints include ``Authorization`` in vary_headers,
    otherwise responses for one user can be served to another.
    """
    base_key = generate_cache_key(config)
    if not vary_headers:
        return base_key

    vary_parts = sorted(
        f"{header}:{value}"
        for header, value in extract_vary_headers(config.headers, vary_headers).items()
    )
    return f"{base_key}|vary[{','.join(vary_parts)}]"
