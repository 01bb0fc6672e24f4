"""
Request deduplication (singleflight).

When identical requests are made concurrently only the first one executes;
the others await the same task and receive the same result object.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from .cache_key import generate_cache_key
from .types import HttpResult, RequestConfig


class Deduplicator:
    """
    Collapses concurrent identical in-flight requests into one execution.

    The ledger entry for a key is removed as soon as its execution settles,
    whether it succeeded, failed or raised.

    Example:
        dedup = Deduplicator()

        # 50 concurrent calls, one network request
        results = await asyncio.gather(
            *[dedup.dedupe(request, fetch_users) for _ in range(50)]
        )
    """

    def __init__(
        self,
        key_generator: Optional[Callable[[RequestConfig], str]] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._key_generator = key_generator or generate_cache_key
        self._logger = logger or logging.getLogger(__name__)
        self._in_flight: Dict[str, "asyncio.Task[HttpResult]"] = {}

    async def dedupe(
        self,
        request: RequestConfig,
        executor: Callable[[], Awaitable[HttpResult]],
    ) -> HttpResult:
        """Run executor unless an identical request is already in flight."""
        key = self._key_generator(request)

        existing = self._in_flight.get(key)
        if existing is not None:
            self._logger.debug(f"Deduplicator.dedupe: joined in-flight key={key}")
            return await asyncio.shield(existing)

        task: "asyncio.Task[HttpResult]"

        async def _run() -> HttpResult:
            try:
                return await executor()
            finally:
                if self._in_flight.get(key) is task:
                    del self._in_flight[key]

        task = asyncio.ensure_future(_run())
        self._in_flight[key] = task
        self._logger.debug(
            f"Deduplicator.dedupe: tracking key={key} in_flight={len(self._in_flight)}"
        )

        return await asyncio.shield(task)

    def is_in_flight(self, request: RequestConfig) -> bool:
        """Check if a request is currently in flight."""
        return self._key_generator(request) in self._in_flight

    def get_in_flight_count(self) -> int:
        return len(self._in_flight)

    def clear(self) -> None:
        """Forget all in-flight requests (running executions are not cancelled)."""
        self._in_flight.clear()
