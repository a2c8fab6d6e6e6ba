"""Command objects for queued writes."""

from portalsync.mutations.commands import (
    ENTITY_LABELS,
    CreateCommand,
    DeleteCommand,
    MutationCommand,
    MutationKind,
    UpdateCommand,
    build_command,
    describe,
    raise_for_update,
)

__all__ = [
    "ENTITY_LABELS",
    "CreateCommand",
    "DeleteCommand",
    "MutationCommand",
    "MutationKind",
    "UpdateCommand",
    "build_command",
    "describe",
    "raise_for_update",
]
