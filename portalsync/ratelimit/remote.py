"""Rate limiter that defers to the remote store's authoritative counter."""

from datetime import timedelta

from portalsync.observability.metrics import RATE_LIMIT_DENIALS
from portalsync.ratelimit.limiter import RateLimiter
from portalsync.ratelimit.models import RateLimitResult
from portalsync.remote.base import RemoteStore
from portalsync.utils.clock import Clock, SystemClock


class RemoteRateLimiter(RateLimiter):
    """Asks the remote store; its answer is final.

    The remote check returns only a boolean, so `remaining` is reported as
    0 on denial and as unknown (-1) otherwise.
    """

    def __init__(self, remote: RemoteStore, clock: Clock | None = None) -> None:
        self._remote = remote
        self._clock = clock or SystemClock()

    async def evaluate(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> RateLimitResult:
        allowed = await self._remote.check_rate_limit(
            actor_id, action_type, max_requests, window_minutes
        )
        if not allowed:
            RATE_LIMIT_DENIALS.labels(action_type=action_type, source="remote").inc()
        return RateLimitResult(
            allowed=allowed,
            actor_id=actor_id,
            action_type=action_type,
            limit=max_requests,
            remaining=-1 if allowed else 0,
            reset_at=self._clock.now() + timedelta(minutes=window_minutes),
        )
