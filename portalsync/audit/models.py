"""Audit record model.

Audit records are immutable once written: insert carries only the
after-state, delete only the before-state, update both.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from portalsync.utils.clock import utc_now


class AuditAction(str, Enum):
    """Kind of state change captured by an audit record."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class FieldChange(BaseModel):
    """Old and new value of one field in an update.

    A field missing on one side is reported as None on that side.
    """

    model_config = ConfigDict(frozen=True)

    old: Any = None
    new: Any = None


def diff_states(
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
) -> dict[str, FieldChange]:
    """Compare two states key by key, keeping only keys whose values differ."""
    before = before or {}
    after = after or {}
    keys = list(before) + [key for key in after if key not in before]
    return {
        key: FieldChange(old=before.get(key), new=after.get(key))
        for key in keys
        if key not in before or key not in after or before[key] != after[key]
    }


class AuditRecord(BaseModel):
    """Append-only record of one insert, update or delete."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Write time")
    actor_id: str = Field(..., description="Who made the change")
    actor_label: str | None = Field(default=None, description="Display name or e-mail")
    table_name: str = Field(..., description="Table the record belongs to")
    record_id: str = Field(..., description="Primary key of the changed record")
    action: AuditAction
    before_state: dict[str, Any] | None = Field(default=None)
    after_state: dict[str, Any] | None = Field(default=None)

    @model_validator(mode="after")
    def _states_match_action(self) -> "AuditRecord":
        if self.action is AuditAction.INSERT:
            if self.after_state is None or self.before_state is not None:
                raise ValueError("insert records carry only after_state")
        elif self.action is AuditAction.DELETE:
            if self.before_state is None or self.after_state is not None:
                raise ValueError("delete records carry only before_state")
        elif self.before_state is None or self.after_state is None:
            raise ValueError("update records carry before_state and after_state")
        return self

    def diff(self) -> dict[str, FieldChange]:
        """Changed fields of an update; empty for inserts and deletes."""
        if self.action is not AuditAction.UPDATE:
            return {}
        return diff_states(self.before_state, self.after_state)
