"""In-memory implementation of QueueStore."""

from portalsync.queue.models import MutationRecord
from portalsync.queue.store import QueueStore


class InMemoryQueueStore(QueueStore):
    """In-memory implementation of QueueStore for testing and development.

    Survives queue instances, not the process.
    """

    def __init__(self, entries: list[MutationRecord] | None = None) -> None:
        self._entries: list[MutationRecord] = list(entries or [])
        self.saves = 0

    async def load(self) -> list[MutationRecord]:
        return list(self._entries)

    async def save(self, entries: list[MutationRecord]) -> None:
        self._entries = list(entries)
        self.saves += 1
