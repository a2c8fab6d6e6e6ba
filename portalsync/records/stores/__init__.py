"""Record stores."""

from portalsync.records.store import RecordStore
from portalsync.records.stores.inmemory import InMemoryRecordStore

__all__ = [
    "InMemoryRecordStore",
    "RecordStore",
]
