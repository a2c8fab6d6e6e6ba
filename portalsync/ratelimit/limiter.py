"""Sliding-window rate limiting keyed by actor and action type."""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from portalsync.observability.logging import get_logger
from portalsync.observability.metrics import RATE_LIMIT_DENIALS
from portalsync.ratelimit.models import RateLimitResult
from portalsync.utils.clock import Clock, SystemClock

logger = get_logger(__name__)


class RateLimiter(ABC):
    """Abstract base class for rate limiters."""

    @abstractmethod
    async def evaluate(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> RateLimitResult:
        """Count a request against the window and report the decision."""
        pass

    async def check(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> bool:
        """True if the request is allowed; a True answer consumes one slot."""
        result = await self.evaluate(actor_id, action_type, max_requests, window_minutes)
        return result.allowed


@dataclass
class RateLimitWindow:
    """Sliding window state for one (actor, action type) key."""

    requests: list[datetime] = field(default_factory=list)
    """Times of requests counted in the window, oldest first."""


class SlidingWindowRateLimiter(RateLimiter):
    """In-memory sliding window rate limiter.

    Tracks the time of every allowed request per (actor, action type) and
    prunes those older than the trailing window on each check. Denied
    requests are not counted, so a denied caller regains capacity as soon
    as its oldest request leaves the window.

    Used as the authoritative limiter of the in-process store and as the
    advisory pre-check in front of the remote one.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._windows: dict[tuple[str, str], RateLimitWindow] = defaultdict(RateLimitWindow)

    def _prune(self, key: tuple[str, str], window_minutes: int) -> RateLimitWindow:
        window_start = self._clock.now() - timedelta(minutes=window_minutes)
        window = self._windows[key]
        window.requests = [ts for ts in window.requests if ts > window_start]
        return window

    async def evaluate(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> RateLimitResult:
        if max_requests <= 0 or window_minutes <= 0:
            raise ValueError("max_requests and window_minutes must be positive")

        now = self._clock.now()
        window = self._prune((actor_id, action_type), window_minutes)

        current_count = len(window.requests)
        allowed = current_count < max_requests
        if allowed:
            window.requests.append(now)

        oldest = window.requests[0] if window.requests else now
        result = RateLimitResult(
            allowed=allowed,
            actor_id=actor_id,
            action_type=action_type,
            limit=max_requests,
            remaining=max(0, max_requests - len(window.requests)),
            reset_at=oldest + timedelta(minutes=window_minutes),
        )

        if not allowed:
            RATE_LIMIT_DENIALS.labels(action_type=action_type, source="local").inc()
            logger.warning(
                "rate_limit_exceeded",
                actor_id=actor_id,
                action_type=action_type,
                limit=max_requests,
                window_minutes=window_minutes,
            )
        return result

    def remaining(self, actor_id: str, action_type: str, max_requests: int, window_minutes: int) -> int:
        """Requests left in the window, without consuming one."""
        window = self._prune((actor_id, action_type), window_minutes)
        return max(0, max_requests - len(window.requests))

    def reset_in(self, actor_id: str, action_type: str, window_minutes: int) -> timedelta:
        """Time until the oldest counted request leaves the window."""
        window = self._prune((actor_id, action_type), window_minutes)
        if not window.requests:
            return timedelta(0)
        expires = window.requests[0] + timedelta(minutes=window_minutes)
        return max(timedelta(0), expires - self._clock.now())

    def reset(self, actor_id: str, action_type: str) -> None:
        """Forget the window for one key."""
        self._windows.pop((actor_id, action_type), None)

    def reset_all(self) -> None:
        self._windows.clear()

    def cleanup(self, max_age: timedelta = timedelta(hours=24)) -> int:
        """Drop windows with no request newer than max_age. Returns count dropped."""
        cutoff = self._clock.now() - max_age
        stale = [
            key
            for key, window in self._windows.items()
            if not window.requests or window.requests[-1] <= cutoff
        ]
        for key in stale:
            del self._windows[key]
        return len(stale)
