"""JSON file implementation of QueueStore."""

import asyncio
import os
from pathlib import Path

from pydantic import TypeAdapter

from portalsync.observability.logging import get_logger
from portalsync.queue.models import MutationRecord
from portalsync.queue.store import QueueStore

logger = get_logger(__name__)

_ENTRIES = TypeAdapter(list[MutationRecord])


class JsonFileQueueStore(QueueStore):
    """Keeps queue entries in a JSON file.

    Writes go to a sibling temporary file that is then renamed over the
    target, so a crash mid-write leaves the previous snapshot intact.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    async def load(self) -> list[MutationRecord]:
        return await asyncio.to_thread(self._read)

    async def save(self, entries: list[MutationRecord]) -> None:
        await asyncio.to_thread(self._write, _ENTRIES.dump_json(entries, indent=2))

    def _read(self) -> list[MutationRecord]:
        if not self.path.exists():
            return []
        entries = _ENTRIES.validate_json(self.path.read_bytes())
        logger.info("queue_loaded", path=str(self.path), entries=len(entries))
        return entries

    def _write(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(data)
        os.replace(tmp, self.path)
