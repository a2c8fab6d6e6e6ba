"""RemoteStore abstract interface.

The contract the mutation pipeline consumes from the data store. Two
implementations exist: the in-process OptimisticConcurrencyController and
HttpRemoteStore, which speaks to the hosted store over HTTP.
"""

from abc import ABC, abstractmethod
from typing import Any

from portalsync.audit.models import AuditRecord
from portalsync.records.models import VersionedEntity
from portalsync.remote.models import BulkInsertResult, UpdateResult


class RemoteStore(ABC):
    """Abstract interface for the remote data store."""

    @abstractmethod
    async def get(self, table: str, record_id: str) -> VersionedEntity | None:
        """Fetch the current stored state of a record."""
        pass

    @abstractmethod
    async def insert(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        actor_id: str,
        record_id: str | None = None,
    ) -> VersionedEntity:
        """Insert one record at version 1.

        Raises:
            RecordValidationError: If the table's validator rejects it
            DuplicateRecordError: If record_id is taken
            RemoteStoreError: On transport failure
        """
        pass

    @abstractmethod
    async def delete(self, table: str, record_id: str, *, actor_id: str) -> VersionedEntity:
        """Delete a record, returning its last stored state.

        Raises:
            RemoteStoreError: NOT_FOUND if absent, or on transport failure
        """
        pass

    @abstractmethod
    async def restore(self, entity: VersionedEntity, *, actor_id: str) -> VersionedEntity:
        """Re-create a deleted record under its old id.

        The restored record continues the version sequence of the deleted
        one (entity.version + 1); versions never reset.
        """
        pass

    @abstractmethod
    async def update_with_version(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
        expected_version: int,
        *,
        actor_id: str,
    ) -> UpdateResult:
        """Apply fields only if the stored version equals expected_version."""
        pass

    @abstractmethod
    async def bulk_insert(
        self,
        table: str,
        records: list[dict[str, Any]],
        actor_id: str,
    ) -> BulkInsertResult:
        """Validate and insert each record independently."""
        pass

    @abstractmethod
    async def check_rate_limit(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> bool:
        """Count a request against the actor's window; False if over the limit."""
        pass

    @abstractmethod
    async def query_audit_log(
        self,
        table_name: str,
        record_id: str | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        """Audit records for a table or one row, newest first."""
        pass
