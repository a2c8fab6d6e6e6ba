"""Reversible Action Registry.

Holds short-lived inverses of destructive operations. Each action gets one
deadline callback scheduled on the injected clock; the callback expires the
action and is cancelled when the action is consumed first.

An action is undone at most once. The first undo() call marks the action
in flight before awaiting the inverse, so any concurrent or later call
fails immediately.
"""

from collections import OrderedDict
from collections.abc import Callable
from datetime import timedelta
from functools import partial
from uuid import uuid4

from portalsync.errors import classify_exception
from portalsync.observability.logging import get_logger
from portalsync.observability.metrics import UNDO_ACTIVE, UNDO_OUTCOMES
from portalsync.undo.models import (
    ActionStatus,
    Inverse,
    ReversibleAction,
    UndoFailureReason,
    UndoResult,
)
from portalsync.utils.clock import Clock, ScheduledCall, SystemClock

logger = get_logger(__name__)

Listener = Callable[[list[ReversibleAction]], None]


class ReversibleActionRegistry:
    """Registry of undoable actions with deadline-based expiry.

    Only one action is surfaced to the user at a time (`current()`): a new
    registration supersedes the display of the previous one, which stays
    undoable by id until its own deadline.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        default_duration_ms: int = 10_000,
        max_actions: int = 50,
    ) -> None:
        """Initialize the registry.

        Args:
            clock: Time source and deadline scheduler
            default_duration_ms: Undo window when register() gets none
            max_actions: Active actions kept; the oldest are expired early
        """
        self._clock = clock or SystemClock()
        self._default_duration_ms = default_duration_ms
        self._max_actions = max_actions
        self._actions: OrderedDict[str, ReversibleAction] = OrderedDict()
        self._inverses: dict[str, Inverse] = {}
        self._deadlines: dict[str, ScheduledCall] = {}
        self._undoing: set[str] = set()
        self._settled: OrderedDict[str, ActionStatus] = OrderedDict()
        self._current: str | None = None
        self._listeners: list[Listener] = []

    def register(
        self,
        message: str,
        inverse: Inverse,
        duration_ms: int | None = None,
    ) -> str:
        """Register a reversible action and return its id."""
        duration_ms = duration_ms if duration_ms is not None else self._default_duration_ms
        if duration_ms <= 0:
            raise ValueError("duration_ms must be positive")

        now = self._clock.now()
        action = ReversibleAction(
            id=str(uuid4()),
            message=message,
            created_at=now,
            expires_at=now + timedelta(milliseconds=duration_ms),
        )
        self._actions[action.id] = action
        self._inverses[action.id] = inverse
        self._deadlines[action.id] = self._clock.call_at(
            action.expires_at, partial(self._on_deadline, action.id)
        )
        self._current = action.id
        self._evict_overflow()

        UNDO_ACTIVE.set(len(self._actions))
        logger.info(
            "undo_registered",
            action_id=action.id,
            message=message,
            duration_ms=duration_ms,
        )
        self._notify()
        return action.id

    def can_undo(self, action_id: str) -> bool:
        """True while the action is active, unexpired and not being undone."""
        action = self._actions.get(action_id)
        if action is None or action_id in self._undoing:
            return False
        return self._clock.now() < action.expires_at

    async def undo(self, action_id: str) -> UndoResult:
        """Run the action's inverse, at most once.

        Returns a failure without side effects when the action is unknown,
        consumed, expired or already being undone. If the inverse raises,
        the classified error is returned and the action stays active until
        its deadline.
        """
        if not self.can_undo(action_id):
            reason = self._failure_reason(action_id)
            if reason == "expired" and action_id in self._actions:
                self._settle(action_id, ActionStatus.EXPIRED)
            UNDO_OUTCOMES.labels(outcome=reason).inc()
            logger.info("undo_rejected", action_id=action_id, reason=reason)
            return UndoResult(success=False, action_id=action_id, reason=reason)

        self._undoing.add(action_id)
        consumed = False
        try:
            await self._inverses[action_id]()
            consumed = True
        except Exception as exc:
            error = classify_exception(exc)
            UNDO_OUTCOMES.labels(outcome="inverse_failed").inc()
            logger.warning(
                "undo_inverse_failed",
                action_id=action_id,
                kind=error.kind.value,
                detail=error.detail,
            )
            return UndoResult(
                success=False,
                action_id=action_id,
                reason="inverse_failed",
                error=error,
            )
        finally:
            self._undoing.discard(action_id)
            if not consumed:
                # The deadline callback skipped this action while it was in flight
                self._expire_if_due(action_id)

        self._settle(action_id, ActionStatus.CONSUMED)
        UNDO_OUTCOMES.labels(outcome="success").inc()
        logger.info("undo_succeeded", action_id=action_id)
        return UndoResult(success=True, action_id=action_id)

    def get(self, action_id: str) -> ReversibleAction | None:
        """The action while it is active, or None."""
        return self._actions.get(action_id)

    def status(self, action_id: str) -> ActionStatus | None:
        """Current status, remembered for recently settled actions too."""
        if action_id in self._actions:
            return ActionStatus.ACTIVE
        return self._settled.get(action_id)

    def time_remaining(self, action_id: str) -> int:
        """Milliseconds left in the undo window; 0 once it is gone."""
        action = self._actions.get(action_id)
        if action is None:
            return 0
        remaining = (action.expires_at - self._clock.now()) / timedelta(milliseconds=1)
        return max(0, int(remaining))

    def current(self) -> ReversibleAction | None:
        """The single action surfaced to the user, if any."""
        if self._current is None:
            return None
        return self._actions.get(self._current)

    def dismiss(self) -> None:
        """Hide the surfaced action. It stays undoable by id until expiry."""
        if self._current is not None:
            self._current = None
            self._notify()

    def active_actions(self) -> list[ReversibleAction]:
        """Active actions, oldest first."""
        return list(self._actions.values())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with the active actions after each change.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Cancel every pending deadline and forget all actions."""
        for handle in self._deadlines.values():
            handle.cancel()
        self._deadlines.clear()
        self._actions.clear()
        self._inverses.clear()
        self._undoing.clear()
        self._current = None
        UNDO_ACTIVE.set(0)

    def __len__(self) -> int:
        return len(self._actions)

    def _failure_reason(self, action_id: str) -> UndoFailureReason:
        if action_id in self._undoing:
            return "in_progress"
        if action_id in self._actions:
            return "expired"
        settled = self._settled.get(action_id)
        if settled is ActionStatus.CONSUMED:
            return "consumed"
        if settled is ActionStatus.EXPIRED:
            return "expired"
        return "unknown"

    def _on_deadline(self, action_id: str) -> None:
        # An undo in flight settles the action itself
        if action_id in self._undoing or action_id not in self._actions:
            return
        self._settle(action_id, ActionStatus.EXPIRED)
        UNDO_OUTCOMES.labels(outcome="expired").inc()
        logger.debug("undo_expired", action_id=action_id)

    def _expire_if_due(self, action_id: str) -> None:
        action = self._actions.get(action_id)
        if action is not None and self._clock.now() >= action.expires_at:
            self._settle(action_id, ActionStatus.EXPIRED)

    def _settle(self, action_id: str, status: ActionStatus) -> None:
        self._actions.pop(action_id, None)
        self._inverses.pop(action_id, None)
        handle = self._deadlines.pop(action_id, None)
        if handle is not None:
            handle.cancel()

        self._settled[action_id] = status
        while len(self._settled) > self._max_actions:
            self._settled.popitem(last=False)

        if self._current == action_id:
            self._current = None
        UNDO_ACTIVE.set(len(self._actions))
        self._notify()

    def _evict_overflow(self) -> None:
        overflow = len(self._actions) - self._max_actions
        if overflow <= 0:
            return
        oldest = [aid for aid in self._actions if aid not in self._undoing][:overflow]
        for action_id in oldest:
            logger.debug("undo_evicted", action_id=action_id)
            self._settle(action_id, ActionStatus.EXPIRED)

    def _notify(self) -> None:
        snapshot = self.active_actions()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("undo_listener_failed")
