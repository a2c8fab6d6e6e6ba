"""Remote data store contract and HTTP client."""

from portalsync.remote.base import RemoteStore
from portalsync.remote.http import HttpRemoteStore
from portalsync.remote.models import (
    BulkInsertResult,
    RecordError,
    UpdateConflict,
    UpdateFailed,
    UpdateNotFound,
    UpdateResult,
    UpdateSucceeded,
)

__all__ = [
    "BulkInsertResult",
    "HttpRemoteStore",
    "RecordError",
    "RemoteStore",
    "UpdateConflict",
    "UpdateFailed",
    "UpdateNotFound",
    "UpdateResult",
    "UpdateSucceeded",
]
