"""Sliding-window rate limiting per actor and action type."""

from portalsync.ratelimit.limiter import RateLimiter, RateLimitWindow, SlidingWindowRateLimiter
from portalsync.ratelimit.models import RateLimitResult

__all__ = [
    "RateLimitResult",
    "RateLimitWindow",
    "RateLimiter",
    "SlidingWindowRateLimiter",
]
