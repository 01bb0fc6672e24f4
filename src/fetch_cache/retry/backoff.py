"""
Exponential backoff with jitter.
"""
import asyncio
import random


def calculate_backoff(
    attempt: int,
    base_delay_ms: float,
    max_delay_ms: float,
    jitter: float,
) -> int:
    """
    Calculate a retry delay in whole milliseconds.

    Formula: min(max_delay, base_delay * 2^attempt) +/- jitter * that value,
    floored at 0. A jitter of 0 is fully deterministic.

    Args:
        attempt: The current attempt number (0-indexed)
        base_delay_ms: Base delay in milliseconds
        max_delay_ms: Maximum delay cap in milliseconds
        jitter: Jitter factor (0-1)

    Returns:
        Delay in milliseconds
    """
    exponential_delay = base_delay_ms * (2 ** attempt)
    capped_delay = min(max(exponential_delay, 0), max_delay_ms)

    jitter_range = capped_delay * jitter
    jitter_offset = (random.random() * 2 - 1) * jitter_range if jitter_range else 0

    return max(0, int(round(capped_delay + jitter_offset)))


async def sleep(ms: float) -> None:
    """Sleep for a duration in milliseconds."""
    await asyncio.sleep(ms / 1000)
