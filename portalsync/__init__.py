"""Portalsync: offline-tolerant mutation pipeline for the classroom portal.

Client-held queue of unconfirmed writes, optimistic concurrency control
with version stamps, time-boxed undo, sliding-window rate limiting and an
append-only audit trail.
"""

__version__ = "0.1.0"
