"""Audit trail: append-only records of every insert, update and delete."""

from portalsync.audit.models import AuditAction, AuditRecord, FieldChange, diff_states
from portalsync.audit.recorder import AuditRecorder

__all__ = [
    "AuditAction",
    "AuditRecord",
    "AuditRecorder",
    "FieldChange",
    "diff_states",
]
