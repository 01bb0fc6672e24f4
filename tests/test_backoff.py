"""
Tests for backoff calculation.
"""
from unittest.mock import AsyncMock, patch

import pytest

from fetch_cache.retry.backoff import calculate_backoff, sleep


class TestCalculateBackoff:
    """Tests for calculate_backoff."""

    def test_exponential_without_jitter(self):
        assert calculate_backoff(0, 1000, 30000, 0) == 1000
        assert calculate_backoff(1, 1000, 30000, 0) == 2000
        assert calculate_backoff(3, 1000, 30000, 0) == 8000

    def test_capped_at_max_delay(self):
        assert calculate_backoff(10, 1000, 5000, 0) == 5000

    def test_jitter_bounds(self):
        """Should stay within +/-10% for jitter 0.1."""
        for _ in range(100):
            delay = calculate_backoff(0, 1000, 30000, 0.1)
            assert 900 <= delay <= 1100

    def test_jitter_extremes(self):
        with patch("fetch_cache.retry.backoff.random.random", return_value=0.0):
            assert calculate_backoff(0, 1000, 30000, 0.5) == 500
        with patch("fetch_cache.retry.backoff.random.random", return_value=1.0):
            assert calculate_backoff(0, 1000, 30000, 0.5) == 1500

    def test_never_negative(self):
        with patch("fetch_cache.retry.backoff.random.random", return_value=0.0):
            assert calculate_backoff(0, 1000, 30000, 1.0) == 0

    def test_returns_int(self):
        assert isinstance(calculate_backoff(2, 100, 30000, 0.3), int)


class TestSleep:
    @pytest.mark.asyncio
    async def test_sleep_converts_to_seconds(self):
        with patch("fetch_cache.retry.backoff.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await sleep(1500)

        mock_sleep.assert_awaited_once_with(1.5)
