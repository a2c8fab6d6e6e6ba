"""AuditStore abstract interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from portalsync.audit.models import AuditAction, AuditRecord


class AuditStore(ABC):
    """Abstract interface for audit storage.

    Append-only: there are deliberately no update or delete operations.
    """

    @abstractmethod
    async def append(self, record: AuditRecord) -> UUID:
        """Persist a record, returning its ID."""
        pass

    @abstractmethod
    async def get(self, record_id: UUID) -> AuditRecord | None:
        """Get an audit record by its own ID."""
        pass

    @abstractmethod
    async def query(
        self,
        table_name: str,
        record_id: str | None = None,
        *,
        action: AuditAction | None = None,
        actor_id: str | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        """List records for a table (optionally one row), newest first."""
        pass
