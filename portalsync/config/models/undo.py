"""Reversible action registry configuration."""

from pydantic import BaseModel, Field


class UndoConfig(BaseModel):
    """Configuration for the undo window."""

    default_duration_ms: int = Field(
        default=10_000,
        gt=0,
        description="How long a destructive action stays undoable",
    )
    max_actions: int = Field(
        default=50,
        gt=0,
        description="Reversible actions tracked at once; oldest are pruned",
    )
