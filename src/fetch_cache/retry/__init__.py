"""
Retry with exponential backoff and a circuit breaker.
"""
from .backoff import calculate_backoff, sleep
from .circuit_breaker import CIRCUIT_OPEN_REASON, CircuitBreaker
from .strategy import RetryStrategy, create_retry_strategy, with_retry

__all__ = [
    "calculate_backoff",
    "sleep",
    "CIRCUIT_OPEN_REASON",
    "CircuitBreaker",
    "RetryStrategy",
    "create_retry_strategy",
    "with_retry",
]
