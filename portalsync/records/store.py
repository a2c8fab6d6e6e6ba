"""RecordStore abstract interface."""

from abc import ABC, abstractmethod

from portalsync.records.models import VersionedEntity


class RecordStore(ABC):
    """Primitive persistence for versioned records.

    Performs no version checks itself: atomic check-and-apply is the
    concurrency controller's job.
    """

    @abstractmethod
    async def get(self, table: str, record_id: str) -> VersionedEntity | None:
        """Get a record by table and ID."""
        pass

    @abstractmethod
    async def insert(self, entity: VersionedEntity) -> VersionedEntity:
        """Insert a new record.

        Raises:
            DuplicateRecordError: If the ID is already taken in the table
        """
        pass

    @abstractmethod
    async def replace(self, entity: VersionedEntity) -> VersionedEntity:
        """Overwrite an existing record."""
        pass

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> VersionedEntity | None:
        """Remove a record, returning what was removed."""
        pass

    @abstractmethod
    async def list_by_table(self, table: str, *, limit: int = 100) -> list[VersionedEntity]:
        """List records of a table."""
        pass
