"""
Single-attempt request executor over httpx.

Each call performs exactly one HTTP exchange and folds every outcome into an
HttpResult. Retry, caching and circuit breaking are layered on top by the
client.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .cache_key import format_param
from .conditional import is_not_modified
from .errors import create_http_error, map_exception
from .types import (
    HttpError,
    HttpErrorCode,
    HttpFailure,
    HttpResult,
    HttpSuccess,
    RequestConfig,
    ResponseMeta,
)

DEFAULT_TIMEOUT_MS = 30000


def _query_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    if not params:
        return None
    return {k: format_param(v) for k, v in params.items() if v is not None}


def _response_meta(response: httpx.Response, duration_ms: float) -> ResponseMeta:
    return ResponseMeta(
        status=response.status_code,
        status_text=response.reason_phrase,
        headers=dict(response.headers),
        url=str(response.url),
        redirected=bool(response.history),
        duration_ms=duration_ms,
    )


def _is_json(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return "json" in content_type.lower()


def _parse_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, text or None. Raises ValueError on bad JSON."""
    if response.request.method == "HEAD" or not response.content:
        return None
    if _is_json(response):
        return response.json()
    return response.text


def _error_body(response: httpx.Response) -> Any:
    try:
        return _parse_body(response)
    except ValueError:
        return response.text


class HttpxExecutor:
    """
    Executes a RequestConfig with an httpx.AsyncClient.

    Outcomes:
        - 2xx: HttpSuccess with the decoded body (JSON, text or None)
        - 304: HttpSuccess with data None, for conditional revalidation
        - 4xx/5xx: HttpFailure with CLIENT_ERROR/SERVER_ERROR and the body
        - transport errors: HttpFailure with NETWORK_ERROR/TIMEOUT_ERROR
        - unroutable or malformed requests: HttpFailure with VALIDATION_ERROR
        - undecodable JSON: HttpFailure with PARSE_ERROR

    Example:
        executor = HttpxExecutor(base_url="https://api.example.com")
        result = await executor.execute(RequestConfig(method="GET", url="/users"))
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: str = "",
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Create a new HttpxExecutor.

        Args:
            client: Existing client to use; it is not closed by aclose()
            base_url: Base URL for relative request URLs
            headers: Headers sent with every request
            timeout_ms: Default per-request timeout. Default: 30000
            transport: Transport for the owned client (ignored with client)
            logger: Logger. Default: module logger
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            follow_redirects=True,
        )
        self._headers = dict(headers or {})
        self._timeout_ms = timeout_ms
        self._logger = logger or logging.getLogger(__name__)

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def execute(self, request: RequestConfig) -> HttpResult:
        """Perform one HTTP exchange."""
        method = request.method.upper()
        url = request.url
        timeout_ms = request.timeout_ms if request.timeout_ms is not None else self._timeout_ms
        headers = {**self._headers, **(request.headers or {})}

        kwargs: Dict[str, Any] = {
            "params": _query_params(request.params),
            "headers": headers,
            "timeout": timeout_ms / 1000,
        }
        if request.body is not None:
            if isinstance(request.body, (bytes, str)):
                kwargs["content"] = request.body
            else:
                kwargs["json"] = request.body

        start = time.monotonic()
        try:
            response = await self._client.request(method, url, **kwargs)
        except Exception as error:
            mapped = map_exception(error, url=url, method=method, request_id=request.request_id)
            self._logger.debug(
                f"HttpxExecutor.execute: {method} {url} failed code={mapped.code.value} error={error!r}"
            )
            return HttpFailure(error=mapped)

        meta = _response_meta(response, (time.monotonic() - start) * 1000)
        self._logger.debug(
            f"HttpxExecutor.execute: {method} {url} status={response.status_code} "
            f"duration_ms={meta.duration_ms:.1f}"
        )

        if is_not_modified(response.status_code):
            return HttpSuccess(data=None, response=meta)

        if response.status_code >= 400:
            return HttpFailure(
                error=create_http_error(
                    response.status_code,
                    response.reason_phrase,
                    url=meta.url,
                    method=method,
                    request_id=request.request_id,
                    body=_error_body(response),
                ),
                response=meta,
            )

        try:
            data = _parse_body(response)
        except ValueError as error:
            return HttpFailure(
                error=HttpError(
                    code=HttpErrorCode.PARSE_ERROR,
                    message=f"Failed to parse response body: {error}",
                    status=response.status_code,
                    status_text=response.reason_phrase,
                    url=meta.url,
                    method=method,
                    request_id=request.request_id,
                    body=response.text,
                    cause=error,
                ),
                response=meta,
            )

        return HttpSuccess(data=data, response=meta)

    async def aclose(self) -> None:
        """Close the underlying client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxExecutor":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
