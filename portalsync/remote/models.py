"""Request and result models for remote store operations.

Version-checked updates return one of four tagged outcomes instead of
raising, since conflicts and missing rows are expected results.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from portalsync.errors import FieldError, MutationError
from portalsync.records.models import VersionedEntity


class RecordError(BaseModel):
    """Why one record of a bulk insert was rejected."""

    model_config = ConfigDict(frozen=True)

    record_ref: str = Field(..., description="Record id, student id or batch position")
    field_errors: list[FieldError] = Field(default_factory=list)


class BulkInsertResult(BaseModel):
    """Per-record outcome of a bulk insert.

    `success` is true only when every record was inserted; warnings never
    block a record. A rate-limited batch reports `error_code="RATE_LIMIT"`
    with nothing inserted.
    """

    success: bool
    inserted: int = 0
    failed: int = 0
    errors: list[RecordError] = Field(default_factory=list)
    error_code: str | None = None
    message: str | None = None
    inserted_ids: list[str] = Field(default_factory=list)
    warnings: list[RecordError] = Field(
        default_factory=list, description="Inserted records that passed with notices, e.g. below KKM"
    )

    @property
    def rate_limited(self) -> bool:
        return self.error_code == "RATE_LIMIT"


class UpdateSucceeded(BaseModel):
    """The expected version matched and the fields were applied."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    new_version: int
    entity: VersionedEntity | None = None
    previous: dict[str, Any] = Field(
        default_factory=dict, description="Column values before the update"
    )


class UpdateConflict(BaseModel):
    """The stored version differs from the expected one; nothing was applied."""

    model_config = ConfigDict(frozen=True)

    status: Literal["conflict"] = "conflict"
    current_version: int


class UpdateNotFound(BaseModel):
    """No record with the given id."""

    model_config = ConfigDict(frozen=True)

    status: Literal["not_found"] = "not_found"


class UpdateFailed(BaseModel):
    """The update could not be carried out."""

    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    error: MutationError


UpdateResult = Annotated[
    UpdateSucceeded | UpdateConflict | UpdateNotFound | UpdateFailed,
    Field(discriminator="status"),
]
