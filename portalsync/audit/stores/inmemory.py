"""In-memory implementation of AuditStore."""

from uuid import UUID

from portalsync.audit.models import AuditAction, AuditRecord
from portalsync.audit.store import AuditStore


class InMemoryAuditStore(AuditStore):
    """In-memory implementation of AuditStore for testing and development.

    Records are kept in insertion order; queries scan linearly. The store
    holds its own deep copies and hands out fresh ones, so nothing a caller
    does to a returned record's states reaches the stored history.
    """

    def __init__(self) -> None:
        self._records: list[AuditRecord] = []
        self._by_id: dict[UUID, AuditRecord] = {}

    async def append(self, record: AuditRecord) -> UUID:
        if record.id in self._by_id:
            raise ValueError(f"Audit record {record.id} already written")
        stored = record.model_copy(deep=True)
        self._records.append(stored)
        self._by_id[stored.id] = stored
        return stored.id

    async def get(self, record_id: UUID) -> AuditRecord | None:
        record = self._by_id.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def query(
        self,
        table_name: str,
        record_id: str | None = None,
        *,
        action: AuditAction | None = None,
        actor_id: str | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        if limit <= 0:
            return []
        results = []
        # Newest first; insertion order breaks created_at ties
        for record in reversed(self._records):
            if record.table_name != table_name:
                continue
            if record_id is not None and record.record_id != record_id:
                continue
            if action is not None and record.action != action:
                continue
            if actor_id is not None and record.actor_id != actor_id:
                continue
            results.append(record)
        results.sort(key=lambda x: x.created_at, reverse=True)
        return [record.model_copy(deep=True) for record in results[:limit]]

    def __len__(self) -> int:
        return len(self._records)
