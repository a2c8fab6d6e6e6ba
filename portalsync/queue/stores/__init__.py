"""QueueStore implementations."""

from portalsync.queue.stores.file import JsonFileQueueStore
from portalsync.queue.stores.inmemory import InMemoryQueueStore

__all__ = ["InMemoryQueueStore", "JsonFileQueueStore"]
