"""Optimistic Concurrency Controller.

In-process implementation of the RemoteStore contract. Every write is
checked against the record's version stamp under a per-record lock, so the
read-compare-write sequence cannot interleave with another coroutine
writing the same record. Successful writes are audited; bulk inserts are
rate-limited per actor.
"""

import asyncio
import time
from collections import defaultdict
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from portalsync.audit.models import AuditAction, AuditRecord
from portalsync.audit.recorder import AuditRecorder
from portalsync.config.models import BULK_INSERT_ACTION, RateLimitPolicy
from portalsync.errors import (
    ErrorKind,
    FieldError,
    MutationError,
    PortalSyncError,
    RecordValidationError,
    RemoteStoreError,
)
from portalsync.observability.logging import get_logger
from portalsync.observability.metrics import (
    BULK_INSERT_ROWS,
    REMOTE_LATENCY,
    VERSION_CONFLICTS,
)
from portalsync.ratelimit.limiter import RateLimiter
from portalsync.records.models import VersionedEntity
from portalsync.records.store import RecordStore
from portalsync.records.validation import ValidatorRegistry
from portalsync.remote.base import RemoteStore
from portalsync.remote.models import (
    BulkInsertResult,
    RecordError,
    UpdateConflict,
    UpdateFailed,
    UpdateNotFound,
    UpdateResult,
    UpdateSucceeded,
)
from portalsync.utils.clock import Clock, SystemClock

logger = get_logger(__name__)

DEFAULT_BULK_POLICY = RateLimitPolicy(max_requests=10, window_minutes=60)

# Columns the store manages itself; callers cannot write them
_RESERVED_FIELDS = frozenset({"id", "version"})


def _record_ref(record: dict[str, Any], index: int) -> str:
    for key in ("id", "student_id"):
        if record.get(key):
            return str(record[key])
    return f"#{index}"


class OptimisticConcurrencyController(RemoteStore):
    """Version-checked writes with auditing and bulk rate limiting.

    Guarantees that among any number of concurrent update_with_version
    calls carrying the same expected version, at most one succeeds; the
    others see a conflict carrying the post-update version.
    """

    def __init__(
        self,
        records: RecordStore,
        audit: AuditRecorder,
        rate_limiter: RateLimiter,
        *,
        validators: ValidatorRegistry | None = None,
        bulk_policy: RateLimitPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            records: Backing record store
            audit: Recorder that receives one record per successful write
            rate_limiter: Authoritative limiter for bulk inserts
            validators: Per-table validators (built-in ones by default)
            bulk_policy: Budget for bulk inserts per actor
            clock: Time source for updated_at
        """
        self._records = records
        self._audit = audit
        self._rate_limiter = rate_limiter
        self._validators = validators or ValidatorRegistry.default()
        self._bulk_policy = bulk_policy or DEFAULT_BULK_POLICY
        self._clock = clock or SystemClock()
        self._locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    def _lock(self, table: str, record_id: str) -> asyncio.Lock:
        return self._locks[(table, record_id)]

    async def get(self, table: str, record_id: str) -> VersionedEntity | None:
        return await self._records.get(table, record_id)

    async def insert(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        actor_id: str,
        record_id: str | None = None,
    ) -> VersionedEntity:
        entity, _ = await self._insert(table, fields, actor_id=actor_id, record_id=record_id)
        return entity

    async def _insert(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        actor_id: str,
        record_id: str | None = None,
    ) -> tuple[VersionedEntity, list[FieldError]]:
        """Validate, insert and audit one record.

        Returns:
            The stored entity and the validation warnings it passed with

        Raises:
            RecordValidationError: If validation reports field errors
        """
        data = {k: v for k, v in fields.items() if k not in _RESERVED_FIELDS}
        validation = await self._validators.validate(table, data, self._records)
        if not validation.valid:
            raise RecordValidationError(f"{table} record rejected", validation.errors)

        entity = VersionedEntity(
            table=table,
            id=str(record_id or fields.get("id") or uuid4()),
            version=1,
            data=data,
            updated_at=self._clock.now(),
        )
        async with self._lock(table, entity.id):
            await self._records.insert(entity)
            try:
                await self._audit.append(
                    table, entity.id, AuditAction.INSERT, after=entity.snapshot(), actor_id=actor_id
                )
            except Exception:
                await self._records.delete(table, entity.id)
                raise
        logger.info("record_inserted", table=table, record_id=entity.id, actor_id=actor_id)
        if validation.warnings:
            logger.info(
                "record_warnings",
                table=table,
                record_id=entity.id,
                fields=[w.field for w in validation.warnings],
            )
        return entity, validation.warnings

    async def delete(self, table: str, record_id: str, *, actor_id: str) -> VersionedEntity:
        async with self._lock(table, record_id):
            removed = await self._records.delete(table, record_id)
            if removed is None:
                raise RemoteStoreError(
                    f"{table}/{record_id} not found", ErrorKind.NOT_FOUND, code="NOT_FOUND"
                )
            try:
                await self._audit.append(
                    table, record_id, AuditAction.DELETE, before=removed.snapshot(), actor_id=actor_id
                )
            except Exception:
                await self._records.insert(removed)
                raise
        logger.info("record_deleted", table=table, record_id=record_id, actor_id=actor_id)
        return removed

    async def restore(self, entity: VersionedEntity, *, actor_id: str) -> VersionedEntity:
        restored = entity.model_copy(
            update={"version": entity.version + 1, "updated_at": self._clock.now()}
        )
        async with self._lock(entity.table, entity.id):
            await self._records.insert(restored)
            try:
                await self._audit.append(
                    entity.table,
                    entity.id,
                    AuditAction.INSERT,
                    after=restored.snapshot(),
                    actor_id=actor_id,
                )
            except Exception:
                await self._records.delete(entity.table, entity.id)
                raise
        logger.info(
            "record_restored",
            table=entity.table,
            record_id=entity.id,
            version=restored.version,
            actor_id=actor_id,
        )
        return restored

    async def update_with_version(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
        expected_version: int,
        *,
        actor_id: str,
    ) -> UpdateResult:
        """Apply fields if and only if the stored version equals expected_version.

        Returns:
            UpdateSucceeded with new_version = expected_version + 1,
            UpdateConflict carrying the stored version (nothing applied),
            UpdateNotFound, or UpdateFailed for store errors.
        """
        started = time.perf_counter()
        try:
            async with self._lock(table, record_id):
                current = await self._records.get(table, record_id)
                if current is None:
                    return UpdateNotFound()

                if current.version != expected_version:
                    VERSION_CONFLICTS.labels(table=table).inc()
                    logger.info(
                        "version_conflict",
                        table=table,
                        record_id=record_id,
                        expected_version=expected_version,
                        current_version=current.version,
                        actor_id=actor_id,
                    )
                    return UpdateConflict(current_version=current.version)

                changes = {k: v for k, v in fields.items() if k not in _RESERVED_FIELDS}
                updated = current.model_copy(
                    update={
                        "data": {**current.data, **changes},
                        "version": current.version + 1,
                        "updated_at": self._clock.now(),
                    }
                )
                await self._records.replace(updated)
                try:
                    await self._audit.append(
                        table,
                        record_id,
                        AuditAction.UPDATE,
                        before=current.snapshot(),
                        after=updated.snapshot(),
                        actor_id=actor_id,
                    )
                except Exception:
                    # Unaudited writes are never kept
                    await self._records.replace(current)
                    raise
        except PortalSyncError as exc:
            logger.error("update_failed", table=table, record_id=record_id, error=exc.message)
            return UpdateFailed(error=exc.to_error())
        finally:
            REMOTE_LATENCY.labels(operation="update_with_version").observe(
                time.perf_counter() - started
            )

        logger.info(
            "record_updated",
            table=table,
            record_id=record_id,
            new_version=updated.version,
            actor_id=actor_id,
        )
        return UpdateSucceeded(
            new_version=updated.version,
            entity=updated,
            previous=dict(current.data),
        )

    async def bulk_insert(
        self,
        table: str,
        records: list[dict[str, Any]],
        actor_id: str,
    ) -> BulkInsertResult:
        """Insert each record independently; partial success is reported per record."""
        allowed = await self._rate_limiter.check(
            actor_id,
            BULK_INSERT_ACTION,
            self._bulk_policy.max_requests,
            self._bulk_policy.window_minutes,
        )
        if not allowed:
            BULK_INSERT_ROWS.labels(table=table, result="rate_limited").inc(len(records))
            return BulkInsertResult(
                success=False,
                inserted=0,
                failed=len(records),
                error_code="RATE_LIMIT",
                message=MutationError.of(ErrorKind.RATE_LIMIT).message,
            )
        inserted_ids: list[str] = []
        errors: list[RecordError] = []
        warnings: list[RecordError] = []
        for index, record in enumerate(records):
            ref = _record_ref(record, index)
            try:
                entity, notices = await self._insert(
                    table, record, actor_id=actor_id, record_id=record.get("id")
                )
            except RecordValidationError as exc:
                errors.append(RecordError(record_ref=ref, field_errors=exc.field_errors))
            except RemoteStoreError as exc:
                errors.append(
                    RecordError(
                        record_ref=ref,
                        field_errors=[FieldError(field="id", message=exc.message)],
                    )
                )
            except ValidationError as exc:
                errors.append(
                    RecordError(
                        record_ref=ref,
                        field_errors=[FieldError(field="record", message=str(exc))],
                    )
                )
            else:
                inserted_ids.append(entity.id)
                if notices:
                    warnings.append(RecordError(record_ref=ref, field_errors=notices))

        BULK_INSERT_ROWS.labels(table=table, result="inserted").inc(len(inserted_ids))
        BULK_INSERT_ROWS.labels(table=table, result="failed").inc(len(errors))
        logger.info(
            "bulk_insert_completed",
            table=table,
            actor_id=actor_id,
            inserted=len(inserted_ids),
            failed=len(errors),
            warned=len(warnings),
        )
        return BulkInsertResult(
            success=not errors,
            inserted=len(inserted_ids),
            failed=len(errors),
            errors=errors,
            warnings=warnings,
            inserted_ids=inserted_ids,
        )

    async def check_rate_limit(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> bool:
        return await self._rate_limiter.check(actor_id, action_type, max_requests, window_minutes)

    async def query_audit_log(
        self,
        table_name: str,
        record_id: str | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        return await self._audit.query(table_name, record_id, limit=limit)
