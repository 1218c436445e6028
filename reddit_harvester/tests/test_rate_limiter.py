"""Tests for the rate limiter module."""

import unittest
from unittest.mock import AsyncMock, patch

import pytest

from reddit_harvester.collector.rate_limiter import RateLimiter, parse_retry_after
from reddit_harvester.config import SourceConfig


class TestRateLimiter:
    """Test cases for the RateLimiter class."""

    def setup_method(self):
        """Set up test environment."""
        self.config = SourceConfig(
            requests_per_minute=60,  # 1 request per second
            min_remaining_calls=5,
            sleep_buffer_sec=1,
        )
        self.rate_limiter = RateLimiter(self.config)

    @pytest.mark.asyncio
    async def test_pre_request_absolute_rate_limit(self):
        """pre_request spaces requests by the minimum interval."""
        self.rate_limiter.last_request_time = 100.0
        with patch("reddit_harvester.collector.rate_limiter.time.time", side_effect=[100.5, 101.0]), \
                patch("reddit_harvester.collector.rate_limiter.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await self.rate_limiter.pre_request()

        mock_sleep.assert_awaited_once_with(0.5)
        assert self.rate_limiter.last_request_time == 101.0

    @pytest.mark.asyncio
    async def test_pre_request_no_sleep_needed(self):
        self.rate_limiter.last_request_time = 100.0
        with patch("reddit_harvester.collector.rate_limiter.time.time", side_effect=[101.5, 101.5]), \
                patch("reddit_harvester.collector.rate_limiter.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await self.rate_limiter.pre_request()

        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pre_request_ratelimit_headers(self):
        """pre_request waits for the window reset when few calls remain."""
        self.rate_limiter.remaining_calls = 3
        self.rate_limiter.reset_timestamp = 110.0
        with patch("reddit_harvester.collector.rate_limiter.time.time", side_effect=[200.0, 100.0, 111.0]), \
                patch("reddit_harvester.collector.rate_limiter.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await self.rate_limiter.pre_request()

        mock_sleep.assert_awaited_once_with(11.0)
        assert self.rate_limiter.remaining_calls is None
        assert self.rate_limiter.reset_timestamp is None

    def test_update_from_headers(self):
        headers = {"x-ratelimit-remaining": "42.0", "x-ratelimit-reset": "30"}
        with patch("reddit_harvester.collector.rate_limiter.time.time", return_value=1000.0):
            self.rate_limiter.update_from_headers(headers)

        assert self.rate_limiter.remaining_calls == 42
        assert self.rate_limiter.reset_timestamp == 1030.0

    def test_update_from_invalid_headers(self):
        self.rate_limiter.update_from_headers({"x-ratelimit-remaining": "lots", "x-ratelimit-reset": "soon"})

        assert self.rate_limiter.remaining_calls is None
        assert self.rate_limiter.reset_timestamp is None

    def test_min_interval(self):
        assert RateLimiter(SourceConfig(requests_per_minute=120)).min_interval == 0.5


class TestParseRetryAfter(unittest.TestCase):
    """Test cases for parse_retry_after."""

    def test_values(self):
        self.assertEqual(parse_retry_after("12"), 12.0)
        self.assertEqual(parse_retry_after("-3"), 0.0)
        self.assertIsNone(parse_retry_after(None))
        self.assertIsNone(parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT"))


if __name__ == "__main__":
    unittest.main()
