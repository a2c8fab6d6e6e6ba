"""Rate limit models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RateLimitResult(BaseModel):
    """Result of a rate limit check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    """Whether the request is within the limit."""

    actor_id: str
    action_type: str

    limit: int
    """Maximum requests allowed in the window."""

    remaining: int
    """Requests left in the trailing window after this one."""

    reset_at: datetime
    """When the oldest counted request leaves the window."""
