"""QueueStore abstract interface."""

from abc import ABC, abstractmethod

from portalsync.queue.models import MutationRecord


class QueueStore(ABC):
    """Where queue entries survive between restarts.

    The queue writes its whole entry list through on every state change,
    so implementations only need whole-snapshot load and save.
    """

    @abstractmethod
    async def load(self) -> list[MutationRecord]:
        """Entries saved by the last save(), in queue order."""
        pass

    @abstractmethod
    async def save(self, entries: list[MutationRecord]) -> None:
        """Replace the stored entries."""
        pass
