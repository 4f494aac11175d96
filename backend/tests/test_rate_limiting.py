"""Tests for the sliding-window rate limiter used by verification codes."""

from unittest.mock import patch

from app.core.rate_limiter import RateLimiter


class TestRateLimiter:
    def test_allows_under_limit(self) -> None:
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        assert all(limiter.is_allowed("k") for _ in range(3))

    def test_rejects_over_limit(self) -> None:
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        limiter.is_allowed("k")
        limiter.is_allowed("k")

        assert not limiter.is_allowed("k")

    def test_keys_are_independent(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("tenant-1:email")
        assert limiter.is_allowed("tenant-1:phone")
        assert not limiter.is_allowed("tenant-1:email")

    def test_window_slides(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        with patch("app.core.rate_limiter.time.monotonic", return_value=1000.0):
            assert limiter.is_allowed("k")
            assert not limiter.is_allowed("k")
        with patch("app.core.rate_limiter.time.monotonic", return_value=1060.5):
            assert limiter.is_allowed("k")

    def test_retry_after(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        with patch("app.core.rate_limiter.time.monotonic", return_value=1000.0):
            assert limiter.retry_after("k") == 0
            limiter.is_allowed("k")
        with patch("app.core.rate_limiter.time.monotonic", return_value=1020.2):
            assert limiter.retry_after("k") == 40

    def test_retry_after_is_at_least_one_second(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        with patch("app.core.rate_limiter.time.monotonic", return_value=1000.0):
            limiter.is_allowed("k")
        with patch("app.core.rate_limiter.time.monotonic", return_value=1059.99):
            assert limiter.retry_after("k") == 1

    def test_rejected_calls_are_not_counted(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        with patch("app.core.rate_limiter.time.monotonic", return_value=1000.0):
            limiter.is_allowed("k")
        with patch("app.core.rate_limiter.time.monotonic", return_value=1050.0):
            assert not limiter.is_allowed("k")
        with patch("app.core.rate_limiter.time.monotonic", return_value=1061.0):
            assert limiter.is_allowed("k")

    def test_reset_single_key(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.is_allowed("a")
        limiter.is_allowed("b")

        limiter.reset("a")

        assert limiter.is_allowed("a")
        assert not limiter.is_allowed("b")

    def test_reset_all(self) -> None:
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.is_allowed("a")
        limiter.is_allowed("b")

        limiter.reset()

        assert limiter.is_allowed("a")
        assert limiter.is_allowed("b")
