"""Versioned entity model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from portalsync.utils.clock import utc_now


class VersionedEntity(BaseModel):
    """A persisted record carrying a monotonically increasing version.

    The version starts at 1 and grows by exactly one per successful write.
    Instances are immutable; every write stores a new instance.
    """

    model_config = ConfigDict(frozen=True)

    table: str = Field(..., description="Table the record lives in")
    id: str = Field(..., description="Primary key")
    version: int = Field(default=1, ge=1, description="Version stamp")
    data: dict[str, Any] = Field(default_factory=dict, description="Column values")
    updated_at: datetime = Field(default_factory=utc_now)

    def snapshot(self) -> dict[str, Any]:
        """Row image used for audit states: id, columns and version."""
        return {"id": self.id, **self.data, "version": self.version}
