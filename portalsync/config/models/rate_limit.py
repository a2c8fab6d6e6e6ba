"""Rate limiting configuration."""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class RateLimitPolicy(BaseModel):
    """Request budget for one action type."""

    max_requests: int = Field(..., gt=0, description="Requests allowed per window")
    window_minutes: int = Field(..., gt=0, description="Trailing window length")


BULK_INSERT_ACTION = "bulk_insert"

DEFAULT_POLICIES: dict[str, dict[str, int]] = {
    BULK_INSERT_ACTION: {"max_requests": 10, "window_minutes": 60},
    "auth": {"max_requests": 5, "window_minutes": 1},
    "api": {"max_requests": 100, "window_minutes": 1},
    "export": {"max_requests": 10, "window_minutes": 5},
    "ai": {"max_requests": 20, "window_minutes": 1},
    "upload": {"max_requests": 20, "window_minutes": 1},
    "default": {"max_requests": 60, "window_minutes": 1},
}


class RateLimitConfig(BaseModel):
    """Named rate limit policies keyed by action type.

    Policies given in TOML or the environment are layered over
    DEFAULT_POLICIES, so overriding one action type keeps the others.
    """

    advisory_precheck: bool = Field(
        default=True,
        description="Check the local limiter before a bulk write round trip",
    )
    policies: dict[str, RateLimitPolicy] = Field(
        default_factory=lambda: {
            name: RateLimitPolicy(**values) for name, values in DEFAULT_POLICIES.items()
        },
    )

    @field_validator("policies", mode="before")
    @classmethod
    def _layer_over_defaults(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        merged: dict[str, Any] = {name: dict(v) for name, v in DEFAULT_POLICIES.items()}
        merged.update(value)
        return merged

    def policy_for(self, action_type: str) -> RateLimitPolicy:
        """Policy for an action type, falling back to 'default'."""
        return self.policies.get(action_type) or self.policies["default"]
