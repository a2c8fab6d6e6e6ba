"""Audit stores."""

from portalsync.audit.store import AuditStore
from portalsync.audit.stores.inmemory import InMemoryAuditStore

__all__ = [
    "AuditStore",
    "InMemoryAuditStore",
]
