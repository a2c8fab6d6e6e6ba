"""Versioned records held by the data store."""

from portalsync.records.models import VersionedEntity
from portalsync.records.store import RecordStore
from portalsync.records.stores import InMemoryRecordStore
from portalsync.records.validation import (
    GradeValidator,
    RecordValidator,
    ValidationResult,
    ValidatorRegistry,
)

__all__ = [
    "GradeValidator",
    "InMemoryRecordStore",
    "RecordStore",
    "RecordValidator",
    "ValidationResult",
    "ValidatorRegistry",
    "VersionedEntity",
]
