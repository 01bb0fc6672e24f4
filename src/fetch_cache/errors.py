"""
Error taxonomy and mapping for fetch_cache.

Failures travel as values (HttpFailure carrying an HttpError); the helpers here
build those errors from HTTP statuses and from exceptions raised by transports.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .types import HttpError, HttpErrorCode, RetryExhaustionError


RETRYABLE_STATUS_CODES = [408, 429, 500, 502, 503, 504]
"""Status codes retried by default."""

_TIMEOUT_PATTERNS = ["timeout", "timed out"]
_NETWORK_PATTERNS = ["network", "connection", "socket", "refused", "reset"]


class StorageQuotaExceededError(Exception):
    """Raised by a storage backend when a write would exceed its quota."""


def is_client_error(status: int) -> bool:
    """Check if status code indicates a client error (4xx)."""
    return 400 <= status < 500


def is_server_error(status: int) -> bool:
    """Check if status code indicates a server error (5xx)."""
    return 500 <= status < 600


def is_network_error(error: HttpError) -> bool:
    return error.code == HttpErrorCode.NETWORK_ERROR


def is_timeout_error(error: HttpError) -> bool:
    return error.code == HttpErrorCode.TIMEOUT_ERROR


def is_retry_exhaustion_error(error: HttpError) -> bool:
    return error.code == HttpErrorCode.RETRY_EXHAUSTION_ERROR


def create_http_error(
    status: int,
    status_text: str = "",
    *,
    url: Optional[str] = None,
    method: Optional[str] = None,
    request_id: Optional[str] = None,
    body: Any = None,
) -> HttpError:
    """Create an HttpError for a non-2xx response."""
    if is_server_error(status):
        code = HttpErrorCode.SERVER_ERROR
    elif is_client_error(status):
        code = HttpErrorCode.CLIENT_ERROR
    else:
        code = HttpErrorCode.UNKNOWN_ERROR

    label = f"{status} {status_text}".strip()
    return HttpError(
        code=code,
        message=f"HTTP {label}",
        status=status,
        status_text=status_text,
        url=url,
        method=method,
        request_id=request_id,
        body=body,
    )


def _classify_exception(error: BaseException) -> HttpErrorCode:
    if isinstance(error, httpx.TimeoutException):
        return HttpErrorCode.TIMEOUT_ERROR
    # Request could not be built or routed; no response exists
    if isinstance(error, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
        return HttpErrorCode.VALIDATION_ERROR
    if isinstance(error, httpx.TransportError):
        return HttpErrorCode.NETWORK_ERROR
    if isinstance(error, httpx.DecodingError):
        return HttpErrorCode.PARSE_ERROR
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return HttpErrorCode.TIMEOUT_ERROR
    if isinstance(error, (ConnectionError, OSError)):
        return HttpErrorCode.NETWORK_ERROR
    if isinstance(error, json.JSONDecodeError):
        return HttpErrorCode.PARSE_ERROR
    if isinstance(error, (ValueError, TypeError)):
        return HttpErrorCode.VALIDATION_ERROR

    # Fall back to the message for wrapped transport errors
    message = str(error).lower()
    if any(pattern in message for pattern in _TIMEOUT_PATTERNS):
        return HttpErrorCode.TIMEOUT_ERROR
    if any(pattern in message for pattern in _NETWORK_PATTERNS):
        return HttpErrorCode.NETWORK_ERROR

    if error.__cause__ is not None:
        return _classify_exception(error.__cause__)

    return HttpErrorCode.UNKNOWN_ERROR


def map_exception(
    error: BaseException,
    *,
    url: Optional[str] = None,
    method: Optional[str] = None,
    request_id: Optional[str] = None,
) -> HttpError:
    """Map an exception raised during a request to an HttpError."""
    return HttpError(
        code=_classify_exception(error),
        message=str(error) or type(error).__name__,
        url=url,
        method=method,
        request_id=request_id,
        cause=error,
    )


def create_retry_exhaustion_error(
    url: str,
    method: str,
    attempts: int,
    attempt_errors: Sequence[HttpError],
    context: Optional[Dict[str, Any]] = None,
) -> RetryExhaustionError:
    """Create the error returned when every eligible attempt has failed."""
    errors: List[HttpError] = list(attempt_errors)
    last = errors[-1] if errors else None
    return RetryExhaustionError(
        code=HttpErrorCode.RETRY_EXHAUSTION_ERROR,
        message=f"Retry exhausted: {method} {url} failed after {attempts} attempts",
        status=last.status if last else None,
        url=url,
        method=method,
        attempts=attempts,
        attempt_errors=errors,
        context=dict(context or {}),
    )
