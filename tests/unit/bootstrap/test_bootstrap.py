"""Tests for pipeline wiring."""

from pathlib import Path

import httpx
import pytest

from portalsync.bootstrap import build_pipeline
from portalsync.concurrency import OptimisticConcurrencyController
from portalsync.config import Settings
from portalsync.config.models import (
    MetricsConfig,
    ObservabilityConfig,
    QueueConfig,
    RateLimitConfig,
    RemoteConfig,
)
from portalsync.mutations import MutationKind
from portalsync.ratelimit.remote import RemoteRateLimiter
from portalsync.remote import HttpRemoteStore
from portalsync.utils.clock import ManualClock

ACTOR = "guru-1"


class TestEmbeddedPipeline:
    """Tests for the in-process backend."""

    @pytest.mark.asyncio
    async def test_delete_then_undo_round_trip(self, clock: ManualClock) -> None:
        pipeline = build_pipeline(ACTOR, Settings(), clock=clock)
        assert isinstance(pipeline.remote, OptimisticConcurrencyController)
        assert pipeline.records is not None and pipeline.audit is not None
        await pipeline.start()

        await pipeline.remote.insert("tasks", {"title": "PR"}, actor_id=ACTOR, record_id="t-1")
        await pipeline.queue.enqueue(MutationKind.DELETE, "tasks", {"id": "t-1"})
        action = pipeline.undo.current()
        assert action is not None
        await pipeline.queue.wait_idle()
        assert await pipeline.remote.get("tasks", "t-1") is None

        clock.advance(ms=2_000)
        result = await pipeline.undo.undo(action.id)

        assert result.success
        restored = await pipeline.remote.get("tasks", "t-1")
        assert restored is not None and restored.version == 2
        history = await pipeline.remote.query_audit_log("tasks", "t-1")
        assert sorted(r.action.value for r in history) == ["delete", "insert", "insert"]
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_undo_window_from_settings(self, clock: ManualClock) -> None:
        settings = Settings(undo={"default_duration_ms": 3_000})
        pipeline = build_pipeline(ACTOR, settings, clock=clock)
        await pipeline.queue.enqueue(MutationKind.DELETE, "tasks", {"id": "t-1"})
        action = pipeline.undo.current()
        assert action is not None

        assert pipeline.undo.time_remaining(action.id) == 3_000
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_explicit_remote_wins(
        self, clock: ManualClock, controller: OptimisticConcurrencyController
    ) -> None:
        settings = Settings(remote=RemoteConfig(backend="http"))
        pipeline = build_pipeline(ACTOR, settings, remote=controller, clock=clock)

        assert pipeline.remote is controller
        assert pipeline.records is None
        await pipeline.close()


class TestAllow:
    """Tests for policy-driven rate limit checks."""

    @pytest.mark.asyncio
    async def test_policy_applied_per_actor(self, clock: ManualClock) -> None:
        settings = Settings(
            rate_limit=RateLimitConfig(
                policies={"export": {"max_requests": 2, "window_minutes": 5}}
            )
        )
        pipeline = build_pipeline(ACTOR, settings, clock=clock)

        assert await pipeline.allow("export")
        assert await pipeline.allow("export")
        assert not await pipeline.allow("export")
        assert await pipeline.allow("export", actor_id="guru-2")

        clock.advance(seconds=5 * 60 + 1)
        assert await pipeline.allow("export")
        await pipeline.close()


class TestHttpPipeline:
    """Tests for the hosted backend."""

    @pytest.mark.asyncio
    async def test_http_backend_defers_rate_limits(self, clock: ManualClock) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=True)

        settings = Settings(
            remote=RemoteConfig(backend="http", base_url="https://portal.example.test")
        )
        pipeline = build_pipeline(
            ACTOR,
            settings,
            clock=clock,
            access_token="jwt-token",
            transport=httpx.MockTransport(handler),
        )

        assert isinstance(pipeline.remote, HttpRemoteStore)
        assert isinstance(pipeline.rate_limiter, RemoteRateLimiter)
        assert pipeline.records is None
        assert await pipeline.allow("bulk_insert")
        assert seen == ["/rest/v1/rpc/check_rate_limit"]
        await pipeline.close()


class TestMetricsAndPersistence:
    """Tests for metrics exposition and queue persistence wiring."""

    @pytest.mark.asyncio
    async def test_metrics_exposition(self, clock: ManualClock) -> None:
        pipeline = build_pipeline(ACTOR, Settings(), clock=clock)
        await pipeline.queue.enqueue(MutationKind.CREATE, "tasks", {"id": "t-1"})
        await pipeline.queue.wait_idle()

        payload = pipeline.metrics()

        assert payload is not None
        assert b"portalsync_mutations_enqueued_total" in payload
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_metrics_disabled(self, clock: ManualClock) -> None:
        settings = Settings(observability=ObservabilityConfig(metrics=MetricsConfig(enabled=False)))
        pipeline = build_pipeline(ACTOR, settings, clock=clock)
        assert pipeline.metrics() is None
        await pipeline.close()

    @pytest.mark.asyncio
    async def test_file_queue_survives_restart(self, tmp_path: Path, clock: ManualClock) -> None:
        settings = Settings(
            queue=QueueConfig(
                persistence="file", file_path=tmp_path / "queue.json", auto_dispatch=False
            )
        )
        first = build_pipeline(ACTOR, settings, clock=clock)
        await first.start()
        mutation_id = await first.queue.enqueue(
            MutationKind.CREATE, "tasks", {"id": "t-1", "title": "PR"}
        )
        await first.close()

        second = build_pipeline(ACTOR, settings, clock=clock)
        await second.start()

        [entry] = second.queue.entries()
        assert entry.id == mutation_id
        assert entry.payload == {"id": "t-1", "title": "PR"}
        await second.close()
