"""Pytest configuration and fixtures for fetch_cache tests."""
import json
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest

from fetch_cache import HttpSuccess, RequestConfig, ResponseMeta


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport returning a fixed response."""

    def __init__(
        self,
        response_status: int = 200,
        response_content: Union[bytes, dict, list] = b'{"success": true}',
        response_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.response_status = response_status
        if isinstance(response_content, (dict, list)):
            response_content = json.dumps(response_content).encode()
        self.response_content = response_content
        self.response_headers = response_headers or {"content-type": "application/json"}
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle the async request and return a mock response."""
        self.requests.append(request)
        return httpx.Response(
            status_code=self.response_status,
            headers=self.response_headers,
            content=self.response_content,
        )

    async def aclose(self) -> None:
        pass


class SequenceMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock transport returning (or raising) queued outcomes in order; the last repeats."""

    def __init__(self, outcomes: List[Union[httpx.Response, Exception, Callable]]) -> None:
        self.outcomes = list(outcomes)
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if callable(outcome) and not isinstance(outcome, httpx.Response):
            outcome = outcome(request)
        if isinstance(outcome, Exception):
            raise outcome
        # Fresh copy so a repeated outcome can be sent more than once
        return httpx.Response(
            status_code=outcome.status_code,
            headers=outcome.headers,
            content=outcome.content,
        )

    async def aclose(self) -> None:
        pass


class ConditionalMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock transport that answers 304 when If-None-Match matches its ETag."""

    def __init__(
        self,
        etag: str = '"v1"',
        body: Optional[dict] = None,
        max_age: int = 60,
        cache_control: Optional[str] = None,
    ) -> None:
        self.etag = etag
        self.body = body or {"version": 1}
        self.cache_control = cache_control or f"max-age={max_age}"
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        headers = {"etag": self.etag, "cache-control": self.cache_control}

        if request.headers.get("if-none-match") == self.etag:
            return httpx.Response(status_code=304, headers=headers)

        return httpx.Response(
            status_code=200,
            headers={**headers, "content-type": "application/json"},
            content=json.dumps(self.body).encode(),
        )

    async def aclose(self) -> None:
        pass


def json_response(status: int = 200, body=None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(
        status_code=status,
        headers={"content-type": "application/json", **(headers or {})},
        content=json.dumps(body if body is not None else {}).encode(),
    )


def make_success(data=None, status: int = 200, headers: Optional[Dict[str, str]] = None) -> HttpSuccess:
    return HttpSuccess(
        data=data,
        response=ResponseMeta(status=status, status_text="OK", headers=headers or {}),
    )


@pytest.fixture
def clock() -> FakeClock:
    """Fake millisecond clock."""
    return FakeClock()


@pytest.fixture
def get_request() -> RequestConfig:
    return RequestConfig(method="GET", url="/users")


@pytest.fixture
def mock_transport() -> MockAsyncTransport:
    return MockAsyncTransport(response_content={"id": 1, "name": "Ada"})
