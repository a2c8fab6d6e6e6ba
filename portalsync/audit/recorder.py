"""Audit Recorder: the single writer of audit records."""

from collections.abc import Callable
from copy import deepcopy
from typing import Any

from portalsync.audit.models import AuditAction, AuditRecord, FieldChange
from portalsync.audit.store import AuditStore
from portalsync.observability.logging import get_logger
from portalsync.observability.metrics import AUDIT_APPENDS
from portalsync.utils.clock import Clock, SystemClock

logger = get_logger(__name__)


class AuditRecorder:
    """Appends immutable audit records and serves newest-first queries.

    States are copied on the way in, so later mutation of the caller's
    dicts cannot alter what was recorded.
    """

    def __init__(
        self,
        store: AuditStore,
        clock: Clock | None = None,
        actor_labels: Callable[[str], str | None] | None = None,
    ) -> None:
        """Initialize the recorder.

        Args:
            store: Backing audit store
            clock: Time source for created_at
            actor_labels: Resolves an actor id to a display label
        """
        self._store = store
        self._clock = clock or SystemClock()
        self._actor_labels = actor_labels

    async def append(
        self,
        table_name: str,
        record_id: str,
        action: AuditAction,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        *,
        actor_id: str,
        actor_label: str | None = None,
    ) -> AuditRecord:
        """Write one audit record.

        Raises:
            pydantic.ValidationError: If the states don't fit the action
        """
        if actor_label is None and self._actor_labels is not None:
            actor_label = self._actor_labels(actor_id)

        record = AuditRecord(
            created_at=self._clock.now(),
            actor_id=actor_id,
            actor_label=actor_label,
            table_name=table_name,
            record_id=str(record_id),
            action=action,
            before_state=deepcopy(before) if before is not None else None,
            after_state=deepcopy(after) if after is not None else None,
        )
        await self._store.append(record)
        AUDIT_APPENDS.labels(table=table_name, action=action.value).inc()
        logger.debug(
            "audit_appended",
            table=table_name,
            record_id=record.record_id,
            action=action.value,
            actor_id=actor_id,
        )
        return record

    async def query(
        self,
        table_name: str,
        record_id: str | None = None,
        *,
        limit: int = 50,
        action: AuditAction | None = None,
        actor_id: str | None = None,
    ) -> list[AuditRecord]:
        """Audit records for a table or one row, newest first."""
        return await self._store.query(
            table_name,
            record_id,
            action=action,
            actor_id=actor_id,
            limit=limit,
        )

    @staticmethod
    def diff(record: AuditRecord) -> dict[str, FieldChange]:
        """Changed fields of an update record."""
        return record.diff()
