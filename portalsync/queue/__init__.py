"""Mutation Queue: client-held writes awaiting confirmation."""

from portalsync.queue.models import MutationRecord, MutationStatus, SyncLogEntry
from portalsync.queue.queue import MutationQueue
from portalsync.queue.store import QueueStore
from portalsync.queue.stores import InMemoryQueueStore, JsonFileQueueStore

__all__ = [
    "InMemoryQueueStore",
    "JsonFileQueueStore",
    "MutationQueue",
    "MutationRecord",
    "MutationStatus",
    "QueueStore",
    "SyncLogEntry",
]
