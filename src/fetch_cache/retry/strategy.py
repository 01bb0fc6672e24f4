"""
Retry strategy: backoff plus a retry-eligibility policy around one executor.
"""
import logging
from typing import Awaitable, Callable, List, Optional

from ..config import merge_retry_config
from ..errors import create_retry_exhaustion_error, map_exception
from ..types import (
    HttpError,
    HttpErrorCode,
    HttpFailure,
    HttpResult,
    RetryConfig,
    RetryEvent,
    RetryEventListener,
)
from .backoff import calculate_backoff, sleep as backoff_sleep


RETRYABLE_ERROR_CODES = (HttpErrorCode.NETWORK_ERROR, HttpErrorCode.TIMEOUT_ERROR)


class RetryStrategy:
    """
    Retries a single-attempt executor with exponential backoff and jitter.

    Two entry points share one loop:

    - ``execute`` returns the executor's own failure when it gives up, whether
      the error was ineligible or the attempts ran out.
    - ``execute_with_history`` returns the original failure for an ineligible
      error, and a RetryExhaustionError carrying every attempt's error when
      eligible attempts ran out.

    Example:
        strategy = RetryStrategy(RetryConfig(max_retries=3))
        result = await strategy.execute(lambda: executor.execute(request))
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = merge_retry_config(config)
        self._sleep = sleep or backoff_sleep
        self._logger = logger or logging.getLogger(__name__)
        self._listeners: List[RetryEventListener] = []

    @property
    def config(self) -> RetryConfig:
        """Get the current configuration."""
        return self._config

    def is_retryable_error(self, error: HttpError) -> bool:
        """Check if an error belongs to a retryable class, ignoring attempt limits."""
        if error.code in RETRYABLE_ERROR_CODES:
            return True
        return error.status is not None and error.status in self._config.retry_on

    def should_retry(self, error: HttpError, attempt: int) -> bool:
        """Decide whether a failed attempt (0-indexed) should be retried."""
        if self._config.should_retry is not None:
            return self._config.should_retry(error, attempt)

        if attempt >= self._config.max_retries:
            return False

        return self.is_retryable_error(error)

    async def execute(
        self, executor: Callable[[], Awaitable[HttpResult]]
    ) -> HttpResult:
        """Execute with retries; on give-up return the last failure."""
        return await self._run(executor, report_exhaustion=False)

    async def execute_with_history(
        self,
        executor: Callable[[], Awaitable[HttpResult]],
        *,
        url: str = "unknown",
        method: str = "unknown",
    ) -> HttpResult:
        """Execute with retries; on exhaustion return a RetryExhaustionError."""
        return await self._run(
            executor, report_exhaustion=True, url=url, method=method
        )

    async def _run(
        self,
        executor: Callable[[], Awaitable[HttpResult]],
        *,
        report_exhaustion: bool,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> HttpResult:
        max_retries = self._config.max_retries
        attempt = 0
        errors: List[HttpError] = []
        last_result: Optional[HttpResult] = None

        while attempt <= max_retries:
            self._emit(RetryEvent(type="attempt:start", attempt=attempt))

            try:
                result = await executor()
            except Exception as error:
                # Executor raised instead of returning a failure
                result = HttpFailure(error=map_exception(error, url=url, method=method))

            if result.success:
                self._emit(RetryEvent(type="attempt:success", attempt=attempt))
                if attempt > 0:
                    self._logger.debug(
                        f"RetryStrategy: succeeded after {attempt} retries url={url}"
                    )
                return result

            last_result = result
            errors.append(result.error)
            will_retry = attempt < max_retries and self.should_retry(result.error, attempt)

            self._emit(RetryEvent(
                type="attempt:fail",
                attempt=attempt,
                data={
                    "code": result.error.code.value,
                    "status": result.error.status,
                    "will_retry": will_retry,
                },
            ))

            if not will_retry:
                break

            delay = calculate_backoff(
                attempt,
                self._config.base_delay_ms,
                self._config.max_delay_ms,
                self._config.jitter,
            )

            self._logger.debug(
                f"RetryStrategy: retrying attempt={attempt + 1} max_retries={max_retries} "
                f"delay_ms={delay} code={result.error.code.value} status={result.error.status}"
            )
            self._emit(RetryEvent(type="retry:wait", attempt=attempt, data={"delay_ms": delay}))

            await self._sleep(delay)
            attempt += 1

        assert last_result is not None and not last_result.success

        if not report_exhaustion:
            return last_result

        exhausted = attempt >= max_retries and self._is_eligible(last_result.error, attempt)
        if not exhausted:
            return last_result

        return HttpFailure(
            error=create_retry_exhaustion_error(
                url or "unknown",
                method or "unknown",
                len(errors),
                errors,
                {"max_retries": max_retries, "last_error": errors[-1]},
            ),
            response=last_result.response,
        )

    def _is_eligible(self, error: HttpError, attempt: int) -> bool:
        if self._config.should_retry is not None:
            return self._config.should_retry(error, attempt)
        return self.is_retryable_error(error)

    def on(self, listener: RetryEventListener) -> Callable[[], None]:
        """
        Add an event listener.

        Returns:
            Function to remove the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def off(self, listener: RetryEventListener) -> None:
        """Remove an event listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: RetryEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                pass  # Ignore listener errors


async def with_retry(
    executor: Callable[[], Awaitable[HttpResult]],
    config: Optional[RetryConfig] = None,
    *,
    url: str = "unknown",
    method: str = "unknown",
) -> HttpResult:
    """
    Execute with retry, reporting exhaustion with the full attempt history.

    Example:
        result = await with_retry(fetch_orders, RetryConfig(max_retries=2), url="/orders", method="GET")
    """
    return await RetryStrategy(config).execute_with_history(executor, url=url, method=method)


def create_retry_strategy(
    config: Optional[RetryConfig] = None,
    *,
    logger: Optional[logging.Logger] = None,
) -> RetryStrategy:
    """Create a new RetryStrategy."""
    return RetryStrategy(config, logger=logger)
