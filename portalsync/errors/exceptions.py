"""Exception hierarchy for portalsync.

Every exception carries a classified ErrorKind. Transport failures are
raised as RemoteStoreError subclasses by the remote store boundary;
misuse of queue and registry operations raises the state errors below.
"""

from portalsync.errors.models import ErrorKind, FieldError, MutationError


class PortalSyncError(Exception):
    """Base exception for all portalsync errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_error(self) -> MutationError:
        """Classified error value for this exception."""
        return MutationError.of(self.kind, detail=self.message)


class RemoteStoreError(PortalSyncError):
    """A remote store call failed before producing a structured outcome."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        *,
        status_code: int | None = None,
        code: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.kind = kind
        self.status_code = status_code
        self.code = code

    def to_error(self) -> MutationError:
        return MutationError.of(
            self.kind,
            detail=self.message,
            status_code=self.status_code,
            code=self.code,
        )


class OfflineError(RemoteStoreError):
    """Submission attempted while the client is offline."""

    def __init__(self, message: str = "client is offline") -> None:
        super().__init__(message, ErrorKind.OFFLINE)


class SessionExpiredError(RemoteStoreError):
    """The remote store rejected the session; must escalate to re-login."""

    def __init__(self, message: str, *, status_code: int | None = 401) -> None:
        super().__init__(message, ErrorKind.UNAUTHORIZED, status_code=status_code)


class MutationNotFoundError(PortalSyncError):
    """No queue entry with the given id."""

    kind = ErrorKind.NOT_FOUND


class InvalidTransitionError(PortalSyncError):
    """Operation not valid for the entry's current status."""

    kind = ErrorKind.VALIDATION


class MutationInFlightError(InvalidTransitionError):
    """The entry is syncing; it cannot be cancelled, only awaited."""


class VersionConflictError(RemoteStoreError):
    """A version-checked write found a newer stored version."""

    def __init__(self, message: str, *, current_version: int) -> None:
        super().__init__(message, ErrorKind.CONFLICT, code="CONFLICT")
        self.current_version = current_version

    def to_error(self) -> MutationError:
        return MutationError.of(
            ErrorKind.CONFLICT,
            detail=self.message,
            code=self.code,
            current_version=self.current_version,
        )


class RecordValidationError(RemoteStoreError):
    """The store rejected a record's fields."""

    def __init__(self, message: str, field_errors: list[FieldError]) -> None:
        super().__init__(message, ErrorKind.VALIDATION, code="VALIDATION")
        self.field_errors = field_errors

    def to_error(self) -> MutationError:
        return MutationError.of(
            ErrorKind.VALIDATION,
            detail=self.message,
            code=self.code,
            field_errors=self.field_errors,
        )


class DuplicateRecordError(RemoteStoreError):
    """A record with the same primary key already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorKind.CONFLICT, code="DUPLICATE")
