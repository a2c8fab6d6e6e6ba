"""Optimistic concurrency control over versioned records."""

from portalsync.concurrency.controller import OptimisticConcurrencyController

__all__ = ["OptimisticConcurrencyController"]
