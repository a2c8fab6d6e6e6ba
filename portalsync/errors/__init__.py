"""Error taxonomy, exceptions and boundary classification."""

from portalsync.errors.classify import (
    classify_exception,
    kind_from_code,
    kind_from_status,
    wrap_transport_error,
)
from portalsync.errors.exceptions import (
    DuplicateRecordError,
    InvalidTransitionError,
    MutationInFlightError,
    MutationNotFoundError,
    OfflineError,
    PortalSyncError,
    RecordValidationError,
    RemoteStoreError,
    SessionExpiredError,
    VersionConflictError,
)
from portalsync.errors.models import USER_MESSAGES, ErrorKind, FieldError, MutationError

__all__ = [
    "USER_MESSAGES",
    "DuplicateRecordError",
    "ErrorKind",
    "FieldError",
    "InvalidTransitionError",
    "MutationError",
    "MutationInFlightError",
    "MutationNotFoundError",
    "OfflineError",
    "PortalSyncError",
    "RecordValidationError",
    "RemoteStoreError",
    "SessionExpiredError",
    "VersionConflictError",
    "classify_exception",
    "kind_from_code",
    "kind_from_status",
    "wrap_transport_error",
]
