"""Unit tests for the sliding window rate limiter."""

from datetime import timedelta

import pytest

from portalsync.ratelimit import SlidingWindowRateLimiter
from portalsync.ratelimit.remote import RemoteRateLimiter
from portalsync.utils.clock import ManualClock


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    @pytest.mark.asyncio
    async def test_allows_requests_under_limit(self, limiter: SlidingWindowRateLimiter) -> None:
        """Requests under the limit are allowed."""
        for i in range(10):
            result = await limiter.evaluate("guru-1", "bulk_insert", 10, 60)
            assert result.allowed, f"Request {i + 1} should be allowed"
            assert result.remaining == 10 - i - 1

    @pytest.mark.asyncio
    async def test_blocks_after_max_requests(self, limiter: SlidingWindowRateLimiter) -> None:
        """The call after max_requests within the window is denied."""
        for _ in range(5):
            assert await limiter.check("guru-1", "auth", 5, 1)

        assert not await limiter.check("guru-1", "auth", 5, 1)

    @pytest.mark.asyncio
    async def test_allows_again_after_window(
        self, limiter: SlidingWindowRateLimiter, clock: ManualClock
    ) -> None:
        """Once the window has elapsed, requests are allowed again."""
        for _ in range(3):
            await limiter.check("guru-1", "export", 3, 5)
        assert not await limiter.check("guru-1", "export", 3, 5)

        clock.advance(seconds=5 * 60 + 1)

        assert await limiter.check("guru-1", "export", 3, 5)

    @pytest.mark.asyncio
    async def test_window_slides(
        self, limiter: SlidingWindowRateLimiter, clock: ManualClock
    ) -> None:
        """Capacity returns one request at a time as old requests age out."""
        await limiter.check("guru-1", "ai", 2, 1)
        clock.advance(seconds=30)
        await limiter.check("guru-1", "ai", 2, 1)
        assert not await limiter.check("guru-1", "ai", 2, 1)

        clock.advance(seconds=31)

        assert await limiter.check("guru-1", "ai", 2, 1)
        assert not await limiter.check("guru-1", "ai", 2, 1)

    @pytest.mark.asyncio
    async def test_separate_keys(self, limiter: SlidingWindowRateLimiter) -> None:
        """Actors and action types have independent windows."""
        await limiter.check("guru-1", "upload", 1, 1)
        assert not await limiter.check("guru-1", "upload", 1, 1)
        assert await limiter.check("guru-2", "upload", 1, 1)
        assert await limiter.check("guru-1", "export", 1, 1)

    @pytest.mark.asyncio
    async def test_denied_requests_not_counted(
        self, limiter: SlidingWindowRateLimiter, clock: ManualClock
    ) -> None:
        await limiter.check("guru-1", "auth", 1, 1)
        for _ in range(5):
            assert not await limiter.check("guru-1", "auth", 1, 1)
        clock.advance(seconds=61)
        assert await limiter.check("guru-1", "auth", 1, 1)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_policy(self, limiter: SlidingWindowRateLimiter) -> None:
        with pytest.raises(ValueError):
            await limiter.check("guru-1", "auth", 0, 1)


class TestLimiterHelpers:
    """Tests for remaining, reset_in, reset and cleanup."""

    @pytest.mark.asyncio
    async def test_remaining_does_not_consume(self, limiter: SlidingWindowRateLimiter) -> None:
        await limiter.check("guru-1", "api", 3, 1)
        assert limiter.remaining("guru-1", "api", 3, 1) == 2
        assert limiter.remaining("guru-1", "api", 3, 1) == 2

    @pytest.mark.asyncio
    async def test_reset_in(self, limiter: SlidingWindowRateLimiter, clock: ManualClock) -> None:
        assert limiter.reset_in("guru-1", "api", 1) == timedelta(0)
        await limiter.check("guru-1", "api", 3, 1)
        clock.advance(seconds=20)
        assert limiter.reset_in("guru-1", "api", 1) == timedelta(seconds=40)

    @pytest.mark.asyncio
    async def test_reset_and_reset_all(self, limiter: SlidingWindowRateLimiter) -> None:
        await limiter.check("guru-1", "auth", 1, 1)
        await limiter.check("guru-2", "auth", 1, 1)

        limiter.reset("guru-1", "auth")
        assert await limiter.check("guru-1", "auth", 1, 1)
        assert not await limiter.check("guru-2", "auth", 1, 1)

        limiter.reset_all()
        assert await limiter.check("guru-2", "auth", 1, 1)

    @pytest.mark.asyncio
    async def test_cleanup_drops_stale_windows(
        self, limiter: SlidingWindowRateLimiter, clock: ManualClock
    ) -> None:
        await limiter.check("guru-1", "api", 10, 1)
        clock.advance(seconds=3600)
        await limiter.check("guru-2", "api", 10, 1)

        dropped = limiter.cleanup(max_age=timedelta(minutes=30))

        assert dropped == 1
        assert limiter.remaining("guru-2", "api", 10, 1) == 9


class TestRemoteRateLimiter:
    """Tests for RemoteRateLimiter."""

    @pytest.mark.asyncio
    async def test_defers_to_remote(self, controller, clock: ManualClock) -> None:
        """The remote store's decision is final."""
        remote_limiter = RemoteRateLimiter(controller, clock)
        assert await remote_limiter.check("guru-1", "export", 1, 5)
        result = await remote_limiter.evaluate("guru-1", "export", 1, 5)
        assert not result.allowed
        assert result.remaining == 0
