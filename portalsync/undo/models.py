"""Reversible action models."""

from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from portalsync.errors import MutationError

Inverse = Callable[[], Awaitable[None]]
"""Coroutine function that re-creates or re-updates the affected entity."""


class ActionStatus(str, Enum):
    """Lifecycle of a reversible action. Only ACTIVE actions can be undone."""

    ACTIVE = "active"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class ReversibleAction(BaseModel):
    """A destructive action that can still be reversed until expires_at.

    The inverse itself is held by the registry, not by the model, so the
    model stays a plain serializable value.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    message: str = Field(..., description="Shown to the user, e.g. 'Menghapus 1 siswa'")
    created_at: datetime
    expires_at: datetime
    status: ActionStatus = ActionStatus.ACTIVE


UndoFailureReason = Literal["unknown", "consumed", "expired", "in_progress", "inverse_failed"]


class UndoResult(BaseModel):
    """Outcome of an undo attempt."""

    model_config = ConfigDict(frozen=True)

    success: bool
    action_id: str
    reason: UndoFailureReason | None = None
    error: MutationError | None = Field(
        default=None, description="Classified failure of the inverse operation"
    )
