"""Shared test fixtures for the portalsync test suite."""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from portalsync.audit import AuditRecorder
from portalsync.audit.stores import InMemoryAuditStore
from portalsync.concurrency import OptimisticConcurrencyController
from portalsync.ratelimit import SlidingWindowRateLimiter
from portalsync.records import InMemoryRecordStore
from portalsync.undo import ReversibleActionRegistry
from portalsync.utils.clock import ManualClock


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from portalsync.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def recorder(audit_store: InMemoryAuditStore, clock: ManualClock) -> AuditRecorder:
    return AuditRecorder(audit_store, clock)


@pytest.fixture
def limiter(clock: ManualClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(clock)


@pytest.fixture
def controller(
    records: InMemoryRecordStore,
    recorder: AuditRecorder,
    limiter: SlidingWindowRateLimiter,
    clock: ManualClock,
) -> OptimisticConcurrencyController:
    """In-process store with auditing and bulk rate limiting."""
    return OptimisticConcurrencyController(records, recorder, limiter, clock=clock)


@pytest.fixture
def registry(clock: ManualClock) -> ReversibleActionRegistry:
    return ReversibleActionRegistry(clock)
