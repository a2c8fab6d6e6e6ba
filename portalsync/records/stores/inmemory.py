"""In-memory implementation of RecordStore."""

from portalsync.errors import DuplicateRecordError
from portalsync.records.models import VersionedEntity
from portalsync.records.store import RecordStore


class InMemoryRecordStore(RecordStore):
    """In-memory implementation of RecordStore for testing and development."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], VersionedEntity] = {}

    async def get(self, table: str, record_id: str) -> VersionedEntity | None:
        return self._records.get((table, record_id))

    async def insert(self, entity: VersionedEntity) -> VersionedEntity:
        key = (entity.table, entity.id)
        if key in self._records:
            raise DuplicateRecordError(f"{entity.table}/{entity.id} already exists")
        self._records[key] = entity
        return entity

    async def replace(self, entity: VersionedEntity) -> VersionedEntity:
        self._records[(entity.table, entity.id)] = entity
        return entity

    async def delete(self, table: str, record_id: str) -> VersionedEntity | None:
        return self._records.pop((table, record_id), None)

    async def list_by_table(self, table: str, *, limit: int = 100) -> list[VersionedEntity]:
        results = [e for (t, _), e in self._records.items() if t == table]
        return results[:limit]
