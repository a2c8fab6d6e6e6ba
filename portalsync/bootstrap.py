"""Wiring of the mutation pipeline from settings.

The queue, undo registry and store are explicit service objects built once
at application start and passed by reference; nothing here is a module
global.

Usage:
    pipeline = build_pipeline(actor_id=actor_id)
    await pipeline.start()
    await pipeline.queue.enqueue("delete", "students", {"id": student_id})
    ...
    await pipeline.close()
"""

from dataclasses import dataclass

import httpx

from portalsync.audit.recorder import AuditRecorder
from portalsync.audit.stores import InMemoryAuditStore
from portalsync.concurrency import OptimisticConcurrencyController
from portalsync.config import Settings, get_settings
from portalsync.config.models import BULK_INSERT_ACTION
from portalsync.observability.logging import get_logger, setup_logging
from portalsync.observability.metrics import render_latest
from portalsync.queue import InMemoryQueueStore, JsonFileQueueStore, MutationQueue, QueueStore
from portalsync.queue.queue import EscalationHook
from portalsync.ratelimit import RateLimiter, SlidingWindowRateLimiter
from portalsync.ratelimit.remote import RemoteRateLimiter
from portalsync.records import InMemoryRecordStore, RecordStore
from portalsync.remote import HttpRemoteStore, RemoteStore
from portalsync.undo import ReversibleActionRegistry
from portalsync.utils.clock import Clock, SystemClock

logger = get_logger(__name__)


@dataclass
class Pipeline:
    """The services of one signed-in session."""

    settings: Settings
    actor_id: str
    remote: RemoteStore
    queue: MutationQueue
    undo: ReversibleActionRegistry
    rate_limiter: RateLimiter
    audit: AuditRecorder | None = None
    records: RecordStore | None = None

    async def start(self) -> None:
        await self.queue.start()

    async def allow(self, action_type: str, actor_id: str | None = None) -> bool:
        """Check an action against its configured rate limit policy."""
        policy = self.settings.rate_limit.policy_for(action_type)
        return await self.rate_limiter.check(
            actor_id or self.actor_id,
            action_type,
            policy.max_requests,
            policy.window_minutes,
        )

    def metrics(self) -> bytes | None:
        """Prometheus exposition of the pipeline metrics, unless disabled."""
        if not self.settings.observability.metrics.enabled:
            return None
        payload, _ = render_latest()
        return payload

    async def close(self) -> None:
        await self.queue.close()
        self.undo.close()
        if isinstance(self.remote, HttpRemoteStore):
            await self.remote.close()
        logger.info("pipeline_closed", actor_id=self.actor_id)


def _queue_store(settings: Settings) -> QueueStore:
    if settings.queue.persistence == "file":
        assert settings.queue.file_path is not None
        return JsonFileQueueStore(settings.queue.file_path)
    return InMemoryQueueStore()


def build_pipeline(
    actor_id: str,
    settings: Settings | None = None,
    *,
    remote: RemoteStore | None = None,
    clock: Clock | None = None,
    access_token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    on_escalation: EscalationHook | None = None,
) -> Pipeline:
    """Build the pipeline for one actor.

    Args:
        actor_id: Signed-in actor the queue submits as
        settings: Settings to use (cached settings by default)
        remote: Ready-made store, overriding `remote.backend`
        clock: Time source shared by every service
        access_token: Session token for the HTTP backend
        transport: httpx transport for the HTTP backend
        on_escalation: Called when the remote rejects the session

    Returns:
        Pipeline whose queue still has to be started
    """
    settings = settings or get_settings()
    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    clock = clock or SystemClock()
    local_limiter = SlidingWindowRateLimiter(clock)
    bulk_policy = settings.rate_limit.policy_for(BULK_INSERT_ACTION)
    audit: AuditRecorder | None = None
    records: RecordStore | None = None
    rate_limiter: RateLimiter = local_limiter

    if remote is None and settings.remote.backend == "embedded":
        records = InMemoryRecordStore()
        audit = AuditRecorder(InMemoryAuditStore(), clock)
        remote = OptimisticConcurrencyController(
            records,
            audit,
            local_limiter,
            bulk_policy=bulk_policy,
            clock=clock,
        )
    elif remote is None:
        remote = HttpRemoteStore.from_config(
            settings.remote,
            access_token=access_token,
            advisory_limiter=local_limiter if settings.rate_limit.advisory_precheck else None,
            bulk_policy=bulk_policy,
            transport=transport,
        )
        rate_limiter = RemoteRateLimiter(remote, clock)

    undo = ReversibleActionRegistry(
        clock,
        default_duration_ms=settings.undo.default_duration_ms,
        max_actions=settings.undo.max_actions,
    )
    queue = MutationQueue(
        remote,
        actor_id=actor_id,
        undo=undo,
        store=_queue_store(settings),
        clock=clock,
        config=settings.queue,
        on_escalation=on_escalation,
    )
    logger.info(
        "pipeline_built",
        backend=type(remote).__name__,
        persistence=settings.queue.persistence,
        actor_id=actor_id,
    )
    return Pipeline(
        settings=settings,
        actor_id=actor_id,
        remote=remote,
        queue=queue,
        undo=undo,
        rate_limiter=rate_limiter,
        audit=audit,
        records=records,
    )
