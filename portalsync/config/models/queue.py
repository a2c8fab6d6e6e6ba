"""Mutation queue configuration."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator

QueuePersistence = Literal["inmemory", "file"]


class QueueConfig(BaseModel):
    """Configuration for the mutation queue and its persistence."""

    auto_dispatch: bool = Field(
        default=True,
        description="Submit entries as soon as they are enqueued while online",
    )
    serialize_per_entity: bool = Field(
        default=False,
        description="Dispatch writes to the same entity one at a time",
    )
    persistence: QueuePersistence = Field(
        default="inmemory",
        description="Where queue entries survive between restarts",
    )
    file_path: Path | None = Field(
        default=None,
        description="JSON file used when persistence is 'file'",
    )
    max_history: int = Field(
        default=200,
        gt=0,
        description="Sync log entries kept in memory",
    )

    @model_validator(mode="after")
    def _file_path_required(self) -> "QueueConfig":
        if self.persistence == "file" and self.file_path is None:
            raise ValueError("queue.file_path is required when persistence is 'file'")
        return self
