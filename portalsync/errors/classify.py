"""Classification of failures at the network boundary.

Classification uses structured data only: HTTP status codes, RPC error
codes and exception types. Message text is never inspected.
"""

import asyncio

import httpx

from portalsync.errors.exceptions import PortalSyncError, RemoteStoreError
from portalsync.errors.models import ErrorKind, MutationError

_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    408: ErrorKind.TIMEOUT,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
    429: ErrorKind.RATE_LIMIT,
    504: ErrorKind.TIMEOUT,
}

_CODE_KINDS: dict[str, ErrorKind] = {
    "NOT_FOUND": ErrorKind.NOT_FOUND,
    "CONFLICT": ErrorKind.CONFLICT,
    "UPDATE_FAILED": ErrorKind.SERVER_ERROR,
    "RATE_LIMIT": ErrorKind.RATE_LIMIT,
    "VALIDATION": ErrorKind.VALIDATION,
    "UNAUTHORIZED": ErrorKind.UNAUTHORIZED,
    "FORBIDDEN": ErrorKind.FORBIDDEN,
    # PostgREST / Postgres codes surfaced by the remote store
    "PGRST301": ErrorKind.UNAUTHORIZED,
    "42501": ErrorKind.FORBIDDEN,
    "23505": ErrorKind.CONFLICT,
    "23502": ErrorKind.VALIDATION,
    "23514": ErrorKind.VALIDATION,
    "57014": ErrorKind.TIMEOUT,
}


def kind_from_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to an ErrorKind."""
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    if status_code >= 400:
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def kind_from_code(code: str | None) -> ErrorKind | None:
    """Map a remote error code to an ErrorKind, or None if unrecognised."""
    if not code:
        return None
    return _CODE_KINDS.get(code.upper())


def classify_exception(exc: BaseException) -> MutationError:
    """Turn an exception raised during submission into a MutationError."""
    if isinstance(exc, PortalSyncError):
        return exc.to_error()
    if isinstance(exc, httpx.TimeoutException | asyncio.TimeoutError):
        return MutationError.of(ErrorKind.TIMEOUT, detail=repr(exc))
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return MutationError.of(kind_from_status(status), detail=repr(exc), status_code=status)
    if isinstance(exc, httpx.TransportError | ConnectionError):
        return MutationError.of(ErrorKind.NETWORK, detail=repr(exc))
    return MutationError.of(ErrorKind.UNKNOWN, detail=repr(exc))


def wrap_transport_error(exc: httpx.HTTPError) -> RemoteStoreError:
    """Wrap an httpx transport failure into a classified RemoteStoreError."""
    error = classify_exception(exc)
    return RemoteStoreError(str(exc) or type(exc).__name__, error.kind, cause=exc)
