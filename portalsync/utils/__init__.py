"""Shared utilities."""

from portalsync.utils.clock import Clock, ManualClock, ScheduledCall, SystemClock, utc_now

__all__ = ["Clock", "ManualClock", "ScheduledCall", "SystemClock", "utc_now"]
