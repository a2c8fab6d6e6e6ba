"""Mutation queue models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from portalsync.errors import MutationError
from portalsync.mutations.commands import MutationKind


class MutationStatus(str, Enum):
    """Queue entry status.

    PENDING entries wait for dispatch, SYNCING ones are in flight and
    FAILED ones wait for a manual retry. Confirmed entries leave the queue.
    """

    PENDING = "pending"
    SYNCING = "syncing"
    FAILED = "failed"


class MutationRecord(BaseModel):
    """A client-originated write not yet confirmed by the remote store.

    Immutable; every transition stores a new instance.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: MutationKind
    entity_type: str = Field(..., description="Table the write targets")
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    retry_count: int = Field(default=0, ge=0)
    status: MutationStatus = MutationStatus.PENDING
    last_error: MutationError | None = None
    actor_id: str | None = Field(default=None, description="Submitting actor, if not the queue's")
    undo_action_id: str | None = Field(
        default=None, description="Paired reversible action while it is active"
    )


SyncOutcome = Literal["success", "conflict", "failed"]


class SyncLogEntry(BaseModel):
    """Terminal outcome of one dispatch attempt."""

    model_config = ConfigDict(frozen=True)

    mutation_id: str
    kind: MutationKind
    entity_type: str
    outcome: SyncOutcome
    at: datetime
    error: MutationError | None = None
