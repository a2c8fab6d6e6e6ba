"""Mutation Queue.

Holds client-originated writes until the remote store confirms them. Each
pending entry is dispatched as its own task; distinct entities are never
serialized against each other. Failures stay in the queue as FAILED
entries carrying a classified error and are only resubmitted by an
explicit retry.

Usage:
    queue = MutationQueue(remote, actor_id=actor_id, undo=registry)
    await queue.start()
    mutation_id = await queue.enqueue(MutationKind.DELETE, "students", {"id": student_id})
    await queue.wait_idle()
"""

import asyncio
from collections import OrderedDict, defaultdict, deque
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, nullcontext
from typing import Any
from uuid import uuid4

from portalsync.config.models import QueueConfig
from portalsync.errors import (
    ErrorKind,
    InvalidTransitionError,
    MutationError,
    MutationInFlightError,
    MutationNotFoundError,
    OfflineError,
    SessionExpiredError,
    classify_exception,
)
from portalsync.mutations.commands import MutationCommand, MutationKind, build_command, describe
from portalsync.observability.logging import bound_context, get_logger
from portalsync.observability.metrics import (
    MUTATIONS_DISPATCHED,
    MUTATIONS_ENQUEUED,
    QUEUE_FAILED,
    QUEUE_PENDING,
)
from portalsync.queue.models import MutationRecord, MutationStatus, SyncLogEntry, SyncOutcome
from portalsync.queue.store import QueueStore
from portalsync.queue.stores.inmemory import InMemoryQueueStore
from portalsync.remote.base import RemoteStore
from portalsync.undo.models import Inverse
from portalsync.undo.registry import ReversibleActionRegistry
from portalsync.utils.clock import Clock, SystemClock

logger = get_logger(__name__)

Listener = Callable[[list[MutationRecord]], None]
EscalationHook = Callable[[SessionExpiredError], None]


class MutationQueue:
    """Queue of not-yet-confirmed writes, drained through a RemoteStore.

    Entries are only changed through the methods below. Snapshots handed
    out by entries(), get() and listeners are immutable records.
    """

    def __init__(
        self,
        remote: RemoteStore,
        *,
        actor_id: str,
        undo: ReversibleActionRegistry | None = None,
        store: QueueStore | None = None,
        clock: Clock | None = None,
        config: QueueConfig | None = None,
        on_escalation: EscalationHook | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            remote: Store the entries are submitted to
            actor_id: Actor attributed to submitted writes
            undo: Registry that receives an undo for destructive writes
            store: Persistence for entries (in-memory by default)
            clock: Time source for created_at and the sync log
            config: Queue settings
            on_escalation: Called when the remote rejects the session
        """
        self._remote = remote
        self._actor_id = actor_id
        self._undo = undo
        self._store = store or InMemoryQueueStore()
        self._clock = clock or SystemClock()
        self._config = config or QueueConfig()
        self._on_escalation = on_escalation

        self._entries: OrderedDict[str, MutationRecord] = OrderedDict()
        self._commands: dict[str, MutationCommand] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._entity_locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)
        self._persist_lock = asyncio.Lock()
        self._listeners: list[Listener] = []
        self._sync_log: deque[SyncLogEntry] = deque(maxlen=self._config.max_history)
        self._online = True

    async def start(self) -> None:
        """Reload persisted entries and dispatch the pending ones.

        Entries persisted as SYNCING were interrupted mid-flight; their
        outcome is unknown, so they come back FAILED for manual retry.
        """
        recovered = 0
        for entry in await self._store.load():
            if entry.status is MutationStatus.SYNCING:
                entry = entry.model_copy(
                    update={
                        "status": MutationStatus.FAILED,
                        "last_error": MutationError.of(
                            ErrorKind.UNKNOWN, detail="interrupted while syncing"
                        ),
                    }
                )
                recovered += 1
            self._entries[entry.id] = entry
            self._commands[entry.id] = build_command(entry.kind, entry.entity_type, entry.payload)

        logger.info("queue_started", entries=len(self._entries), interrupted=recovered)
        await self._changed()
        if self._config.auto_dispatch:
            self._dispatch_pending()

    async def enqueue(
        self,
        kind: MutationKind | str,
        entity_type: str,
        payload: dict[str, Any],
        *,
        undo_message: str | None = None,
        undo_duration_ms: int | None = None,
        actor_id: str | None = None,
    ) -> str:
        """Add a write to the queue and return its id.

        Deletes, and any write given an undo_message, are registered with
        the undo registry. Duplicate payloads are accepted as-is.

        Raises:
            ValueError: If the payload does not fit the kind
        """
        kind = MutationKind(kind)
        command = build_command(kind, entity_type, payload)
        entry = MutationRecord(
            id=str(uuid4()),
            kind=kind,
            entity_type=entity_type,
            payload=dict(payload),
            created_at=self._clock.now(),
            actor_id=actor_id,
        )

        if self._undo is not None and (kind is MutationKind.DELETE or undo_message):
            action_id = self._undo.register(
                undo_message or describe(kind, entity_type),
                self._inverse_for(entry.id, command, actor_id or self._actor_id),
                undo_duration_ms,
            )
            entry = entry.model_copy(update={"undo_action_id": action_id})

        self._entries[entry.id] = entry
        self._commands[entry.id] = command
        MUTATIONS_ENQUEUED.labels(kind=kind.value, entity_type=entity_type).inc()
        logger.info(
            "mutation_enqueued",
            mutation_id=entry.id,
            kind=kind.value,
            entity_type=entity_type,
            undo_action_id=entry.undo_action_id,
        )
        await self._changed()

        if self._config.auto_dispatch:
            self._dispatch(entry.id)
        return entry.id

    async def remove(self, mutation_id: str) -> None:
        """Drop an entry. No-op if absent.

        Raises:
            MutationInFlightError: If the entry is syncing
        """
        entry = self._entries.get(mutation_id)
        if entry is None:
            return
        if entry.status is MutationStatus.SYNCING:
            raise MutationInFlightError(f"mutation {mutation_id} is syncing")
        self._drop(mutation_id)
        logger.info("mutation_removed", mutation_id=mutation_id, status=entry.status.value)
        await self._changed()

    async def retry(self, mutation_id: str) -> None:
        """Move a FAILED entry back to PENDING.

        Raises:
            MutationNotFoundError: If no such entry
            InvalidTransitionError: If the entry is not FAILED
        """
        entry = self._entries.get(mutation_id)
        if entry is None:
            raise MutationNotFoundError(f"mutation {mutation_id} not found")
        if entry.status is not MutationStatus.FAILED:
            raise InvalidTransitionError(
                f"mutation {mutation_id} is {entry.status.value}, only failed entries can be retried"
            )
        self._reset_for_retry(entry)
        await self._changed()
        if self._config.auto_dispatch:
            self._dispatch(mutation_id)

    async def retry_all(self) -> int:
        """Retry every FAILED entry; returns how many were reset."""
        failed = [e for e in self._entries.values() if e.status is MutationStatus.FAILED]
        for entry in failed:
            self._reset_for_retry(entry)
        if failed:
            logger.info("mutations_retried", count=len(failed))
            await self._changed()
            if self._config.auto_dispatch:
                for entry in failed:
                    self._dispatch(entry.id)
        return len(failed)

    async def clear_failed(self) -> int:
        """Drop every FAILED entry; returns how many were dropped."""
        failed = [e.id for e in self._entries.values() if e.status is MutationStatus.FAILED]
        for mutation_id in failed:
            self._drop(mutation_id)
        if failed:
            logger.info("failed_mutations_cleared", count=len(failed))
            await self._changed()
        return len(failed)

    @property
    def pending_count(self) -> int:
        """Entries pending or syncing."""
        return sum(1 for e in self._entries.values() if e.status is not MutationStatus.FAILED)

    @property
    def failed_count(self) -> int:
        return sum(1 for e in self._entries.values() if e.status is MutationStatus.FAILED)

    @property
    def online(self) -> bool:
        return self._online

    def entries(self) -> list[MutationRecord]:
        """All entries in queue order."""
        return list(self._entries.values())

    def get(self, mutation_id: str) -> MutationRecord | None:
        return self._entries.get(mutation_id)

    def failed_entries(self) -> list[MutationRecord]:
        return [e for e in self._entries.values() if e.status is MutationStatus.FAILED]

    def sync_log(self) -> list[SyncLogEntry]:
        """Recent dispatch outcomes, oldest first."""
        return list(self._sync_log)

    async def set_online(self, online: bool) -> None:
        """Record connectivity. Coming back online dispatches pending entries."""
        if online == self._online:
            return
        self._online = online
        logger.info("connectivity_changed", online=online, pending=self.pending_count)
        if online and self._config.auto_dispatch:
            self._dispatch_pending()

    async def drain(self) -> None:
        """Dispatch every pending entry and wait until none is in flight."""
        self._dispatch_pending()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until no submission is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def close(self) -> None:
        """Wait for in-flight submissions and detach listeners."""
        await self.wait_idle()
        self._listeners.clear()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with all entries after each change.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch_pending(self) -> None:
        for entry in list(self._entries.values()):
            if entry.status is MutationStatus.PENDING:
                self._dispatch(entry.id)

    def _dispatch(self, mutation_id: str) -> None:
        entry = self._entries.get(mutation_id)
        if entry is None or entry.status is not MutationStatus.PENDING:
            return
        if not self._online or mutation_id in self._tasks:
            return
        self._entries[mutation_id] = entry.model_copy(update={"status": MutationStatus.SYNCING})
        task = asyncio.create_task(self._submit(mutation_id), name=f"mutation-{mutation_id}")
        self._tasks[mutation_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(mutation_id, None))

    async def _submit(self, mutation_id: str) -> None:
        entry = self._entries[mutation_id]
        command = self._commands[mutation_id]
        actor_id = entry.actor_id or self._actor_id

        with bound_context(
            mutation_id=mutation_id,
            kind=entry.kind.value,
            entity_type=entry.entity_type,
            actor_id=actor_id,
        ):
            try:
                await self._changed()
                if not self._online:
                    raise OfflineError()
                async with self._entity_lock(command):
                    await command.apply(self._remote, actor_id)
            except SessionExpiredError as exc:
                self._fail(entry, exc.to_error())
                logger.error("session_expired")
                if self._on_escalation is not None:
                    self._on_escalation(exc)
                await self._settled_changed()
                return
            except Exception as exc:
                self._fail(entry, classify_exception(exc))
                await self._settled_changed()
                return

            self._drop(mutation_id)
            self._record_outcome(entry, "success")
            logger.info("mutation_synced", retry_count=entry.retry_count)
            await self._settled_changed()

    def _fail(self, entry: MutationRecord, error: MutationError) -> None:
        self._entries[entry.id] = entry.model_copy(
            update={"status": MutationStatus.FAILED, "last_error": error}
        )
        outcome: SyncOutcome = "conflict" if error.kind is ErrorKind.CONFLICT else "failed"
        self._record_outcome(entry, outcome, error)
        logger.warning(
            "mutation_failed",
            error_kind=error.kind.value,
            code=error.code,
            detail=error.detail,
            current_version=error.current_version,
            retryable=error.retryable,
        )

    async def _settled_changed(self) -> None:
        # The entry is already settled in memory; the next change saves it again
        try:
            await self._changed()
        except Exception:
            logger.exception("queue_persist_failed")

    def _record_outcome(
        self,
        entry: MutationRecord,
        outcome: SyncOutcome,
        error: MutationError | None = None,
    ) -> None:
        MUTATIONS_DISPATCHED.labels(
            kind=entry.kind.value, entity_type=entry.entity_type, outcome=outcome
        ).inc()
        self._sync_log.append(
            SyncLogEntry(
                mutation_id=entry.id,
                kind=entry.kind,
                entity_type=entry.entity_type,
                outcome=outcome,
                at=self._clock.now(),
                error=error,
            )
        )

    def _entity_lock(self, command: MutationCommand) -> AbstractAsyncContextManager[Any]:
        entity_id = command.entity_id
        if not self._config.serialize_per_entity or entity_id is None:
            return nullcontext()
        return self._entity_locks[(command.entity_type, entity_id)]

    def _reset_for_retry(self, entry: MutationRecord) -> None:
        self._entries[entry.id] = entry.model_copy(
            update={
                "status": MutationStatus.PENDING,
                "retry_count": entry.retry_count + 1,
                "last_error": None,
            }
        )
        logger.info("mutation_retry", mutation_id=entry.id, retry_count=entry.retry_count + 1)

    def _drop(self, mutation_id: str) -> None:
        self._entries.pop(mutation_id, None)
        self._commands.pop(mutation_id, None)

    def _inverse_for(self, mutation_id: str, command: MutationCommand, actor_id: str) -> Inverse:
        async def inverse() -> None:
            task = self._tasks.get(mutation_id)
            if task is not None:
                await asyncio.shield(task)

            entry = self._entries.get(mutation_id)
            if entry is not None:
                # Never confirmed: withdraw it instead of inverting
                await self.remove(mutation_id)
                logger.info("mutation_withdrawn", mutation_id=mutation_id)
                return
            if command.applied:
                await command.invert(self._remote, actor_id)
                logger.info("mutation_inverted", mutation_id=mutation_id)

        return inverse

    async def _changed(self) -> None:
        """Persist the entries, then notify listeners even if the save failed."""
        QUEUE_PENDING.set(self.pending_count)
        QUEUE_FAILED.set(self.failed_count)
        try:
            async with self._persist_lock:
                await self._store.save(list(self._entries.values()))
        finally:
            snapshot = self.entries()
            for listener in list(self._listeners):
                try:
                    listener(snapshot)
                except Exception:
                    logger.exception("queue_listener_failed")
