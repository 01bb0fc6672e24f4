"""
Circuit breaker around single request attempts.

CLOSED counts consecutive failures and opens at the threshold. OPEN rejects
calls without invoking the operation until the recovery timeout has elapsed
since the last failure, then lets one call through in HALF_OPEN. A success in
HALF_OPEN closes the circuit; a failure reopens it.
"""
import logging
from typing import Awaitable, Callable, Optional

from ..config import merge_circuit_breaker_config, system_clock_ms
from ..errors import create_retry_exhaustion_error
from ..types import CircuitBreakerConfig, CircuitState, Clock, HttpFailure, HttpResult


CIRCUIT_OPEN_REASON = "Circuit breaker is OPEN"


class CircuitBreaker:
    """
    Example:
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3))
        result = await breaker.execute(lambda: executor.execute(request))
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        *,
        failure_threshold: Optional[int] = None,
        recovery_timeout_ms: Optional[int] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = merge_circuit_breaker_config(config)
        if failure_threshold is not None:
            self._config.failure_threshold = max(1, failure_threshold)
        if recovery_timeout_ms is not None:
            self._config.recovery_timeout_ms = max(0, recovery_timeout_ms)
        self._clock = clock or system_clock_ms
        self._logger = logger or logging.getLogger(__name__)
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    async def execute(self, operation: Callable[[], Awaitable[HttpResult]]) -> HttpResult:
        """
        Run one attempt under the breaker.

        An open circuit returns a retry exhaustion failure with zero attempts.
        Exceptions raised by the operation count as failures and propagate.
        """
        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - self._last_failure_time
            if elapsed < self._config.recovery_timeout_ms:
                self._logger.debug(
                    f"CircuitBreaker.execute: rejected, retry in "
                    f"{self._config.recovery_timeout_ms - elapsed}ms"
                )
                return HttpFailure(
                    error=create_retry_exhaustion_error(
                        "circuit-breaker",
                        "circuit-breaker",
                        0,
                        [],
                        {"reason": CIRCUIT_OPEN_REASON},
                    )
                )
            self._transition(CircuitState.HALF_OPEN)

        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise

        if result.success:
            self._on_success()
        else:
            self._on_failure()
        return result

    def get_state(self) -> CircuitState:
        return self._state

    def get_failure_count(self) -> int:
        return self._failures

    def reset(self) -> None:
        """Force the circuit closed and clear the failure count."""
        self._failures = 0
        self._last_failure_time = 0
        self._transition(CircuitState.CLOSED)

    def _on_success(self) -> None:
        self._failures = 0
        if self._state != CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        self._failures += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN or self._failures >= self._config.failure_threshold:
            if self._state != CircuitState.OPEN:
                self._transition(CircuitState.OPEN)

    def _transition(self, state: CircuitState) -> None:
        if state == self._state:
            return
        self._logger.info(
            f"CircuitBreaker: {self._state.value} -> {state.value} "
            f"failures={self._failures}"
        )
        self._state = state
