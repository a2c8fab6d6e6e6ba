"""Tests for failure classification at the network boundary."""

import asyncio

import httpx
import pytest

from portalsync.errors import (
    ErrorKind,
    FieldError,
    MutationError,
    OfflineError,
    RecordValidationError,
    VersionConflictError,
    classify_exception,
    kind_from_code,
    kind_from_status,
    wrap_transport_error,
)


class TestKindFromStatus:
    """Tests for HTTP status mapping."""

    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (401, ErrorKind.UNAUTHORIZED),
            (403, ErrorKind.FORBIDDEN),
            (404, ErrorKind.NOT_FOUND),
            (409, ErrorKind.CONFLICT),
            (400, ErrorKind.VALIDATION),
            (422, ErrorKind.VALIDATION),
            (429, ErrorKind.RATE_LIMIT),
            (408, ErrorKind.TIMEOUT),
            (504, ErrorKind.TIMEOUT),
            (500, ErrorKind.SERVER_ERROR),
            (503, ErrorKind.SERVER_ERROR),
        ],
    )
    def test_status_mapping(self, status: int, kind: ErrorKind) -> None:
        assert kind_from_status(status) is kind


class TestKindFromCode:
    """Tests for RPC error code mapping."""

    def test_rpc_codes(self) -> None:
        assert kind_from_code("NOT_FOUND") is ErrorKind.NOT_FOUND
        assert kind_from_code("CONFLICT") is ErrorKind.CONFLICT
        assert kind_from_code("UPDATE_FAILED") is ErrorKind.SERVER_ERROR
        assert kind_from_code("RATE_LIMIT") is ErrorKind.RATE_LIMIT

    def test_unknown_code(self) -> None:
        """Unrecognised and missing codes give None so status can decide."""
        assert kind_from_code("SOMETHING") is None
        assert kind_from_code(None) is None


class TestClassifyException:
    """Tests for classify_exception."""

    def test_timeout(self) -> None:
        exc = httpx.ReadTimeout("slow")
        assert classify_exception(exc).kind is ErrorKind.TIMEOUT
        assert classify_exception(asyncio.TimeoutError()).kind is ErrorKind.TIMEOUT

    def test_network(self) -> None:
        exc = httpx.ConnectError("refused")
        error = classify_exception(exc)
        assert error.kind is ErrorKind.NETWORK
        assert error.retryable

    def test_message_text_is_ignored(self) -> None:
        """A generic exception mentioning 'network' stays UNKNOWN."""
        error = classify_exception(RuntimeError("network 404 timeout"))
        assert error.kind is ErrorKind.UNKNOWN

    def test_portalsync_errors_keep_their_kind(self) -> None:
        assert classify_exception(OfflineError()).kind is ErrorKind.OFFLINE

    def test_conflict_keeps_current_version(self) -> None:
        error = classify_exception(VersionConflictError("stale", current_version=4))
        assert error.kind is ErrorKind.CONFLICT
        assert error.current_version == 4

    def test_validation_keeps_field_errors(self) -> None:
        exc = RecordValidationError(
            "rejected", [FieldError(field="score", message="Nilai harus antara 0-100")]
        )
        error = classify_exception(exc)
        assert error.kind is ErrorKind.VALIDATION
        assert error.field_errors[0].field == "score"

    def test_wrap_transport_error(self) -> None:
        wrapped = wrap_transport_error(httpx.ConnectError("refused"))
        assert wrapped.kind is ErrorKind.NETWORK
        assert isinstance(wrapped.cause, httpx.ConnectError)


class TestErrorPolicy:
    """Tests for the per-kind propagation policy."""

    def test_retryable_kinds(self) -> None:
        retryable = {k for k in ErrorKind if k.retryable}
        assert retryable == {
            ErrorKind.NETWORK,
            ErrorKind.TIMEOUT,
            ErrorKind.SERVER_ERROR,
            ErrorKind.OFFLINE,
        }

    def test_reload_kinds(self) -> None:
        assert ErrorKind.CONFLICT.requires_reload
        assert ErrorKind.NOT_FOUND.requires_reload
        assert ErrorKind.VALIDATION.requires_reload
        assert not ErrorKind.NETWORK.requires_reload

    def test_rate_limit_waits_and_unauthorized_escalates(self) -> None:
        assert ErrorKind.RATE_LIMIT.should_wait
        assert ErrorKind.UNAUTHORIZED.escalates
        assert not ErrorKind.RATE_LIMIT.retryable

    def test_user_message_per_kind(self) -> None:
        """Every kind has a user-facing message."""
        for kind in ErrorKind:
            assert MutationError.of(kind).message
