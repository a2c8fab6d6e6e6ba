"""Reversible Action Registry (undo)."""

from portalsync.undo.models import ActionStatus, Inverse, ReversibleAction, UndoResult
from portalsync.undo.registry import ReversibleActionRegistry

__all__ = [
    "ActionStatus",
    "Inverse",
    "ReversibleAction",
    "ReversibleActionRegistry",
    "UndoResult",
]
