"""Tests for structured logging."""

import structlog

from portalsync.observability.logging import (
    PIIRedactor,
    bound_context,
    get_logger,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        """Should configure JSON format for production."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        logger = get_logger("test")
        logger.info("test_message")

    def test_setup_console_format(self) -> None:
        """Should configure console format for development."""
        setup_logging(level="DEBUG", format="console", redact_pii=True)
        logger = get_logger("test")
        logger.debug("test_message", parent_phone="+62 812 3456 7890")


class TestPIIRedactor:
    """Tests for PIIRedactor processor."""

    def test_redacts_sensitive_keys(self) -> None:
        """Known sensitive keys are replaced outright."""
        redactor = PIIRedactor()
        event = {"event": "student_saved", "nisn": "0012345678", "name": "Budi"}
        result = redactor(None, "info", event)
        assert result["nisn"] == "[REDACTED]"
        assert result["name"] == "Budi"

    def test_redacts_nested_payloads(self) -> None:
        """Nested dicts and lists are scanned too."""
        redactor = PIIRedactor()
        event = {
            "event": "mutation_enqueued",
            "payload": {"fields": {"parent_email": "ortu@example.com"}},
            "rows": [{"access_code": "ABC123"}],
        }
        result = redactor(None, "info", event)
        assert result["payload"]["fields"]["parent_email"] == "[REDACTED]"
        assert result["rows"][0]["access_code"] == "[REDACTED]"

    def test_redacts_patterns_in_strings(self) -> None:
        """E-mail addresses and phone numbers inside text are masked."""
        redactor = PIIRedactor()
        event = {"event": "note", "detail": "hubungi ortu@example.com atau 0812-3456-7890"}
        result = redactor(None, "info", event)
        assert "[EMAIL]" in result["detail"]
        assert "[PHONE]" in result["detail"]
        assert "ortu@example.com" not in result["detail"]


class TestBoundContext:
    """Tests for bound_context."""

    def test_binds_and_resets(self) -> None:
        """Values are bound inside the block and removed after it."""
        with bound_context(mutation_id="m-1"):
            assert structlog.contextvars.get_contextvars()["mutation_id"] == "m-1"
        assert "mutation_id" not in structlog.contextvars.get_contextvars()
