"""Configuration models for portalsync sections."""

from portalsync.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from portalsync.config.models.queue import QueueConfig
from portalsync.config.models.rate_limit import (
    BULK_INSERT_ACTION,
    RateLimitConfig,
    RateLimitPolicy,
)
from portalsync.config.models.remote import RemoteConfig
from portalsync.config.models.undo import UndoConfig

__all__ = [
    "BULK_INSERT_ACTION",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "QueueConfig",
    "RateLimitConfig",
    "RateLimitPolicy",
    "RemoteConfig",
    "UndoConfig",
]
