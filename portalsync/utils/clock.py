"""Injectable clocks with deadline scheduling.

Services never read the wall clock directly. They take a Clock so tests can
drive time deterministically with ManualClock instead of sleeping.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class ScheduledCall(ABC):
    """Cancellation token for a scheduled deadline callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Clock(ABC):
    """Source of the current time and of one-shot deadline callbacks."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time (timezone-aware UTC)."""
        pass

    @abstractmethod
    def call_at(self, when: datetime, callback: Callable[[], None]) -> ScheduledCall:
        """Run callback once, at or after `when`."""
        pass


class _LoopCall(ScheduledCall):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class SystemClock(Clock):
    """Wall clock; deadlines are scheduled on the running event loop."""

    def now(self) -> datetime:
        return utc_now()

    def call_at(self, when: datetime, callback: Callable[[], None]) -> ScheduledCall:
        loop = asyncio.get_running_loop()
        delay = max(0.0, (when - self.now()).total_seconds())
        return _LoopCall(loop.call_later(delay, callback))


class _ManualCall(ScheduledCall):
    def __init__(self, when: datetime, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualClock(Clock):
    """Clock that only moves when told to.

    Callbacks scheduled with call_at fire synchronously from advance(),
    in deadline order, once the clock reaches their deadline.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 1, 6, 7, 0, tzinfo=UTC)
        self._calls: list[tuple[datetime, int, _ManualCall]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_at(self, when: datetime, callback: Callable[[], None]) -> ScheduledCall:
        call = _ManualCall(when, callback)
        heapq.heappush(self._calls, (when, next(self._seq), call))
        return call

    def advance(self, *, seconds: float = 0, ms: float = 0) -> None:
        """Move the clock forward, firing every callback that comes due."""
        target = self._now + timedelta(seconds=seconds, milliseconds=ms)
        while self._calls and self._calls[0][0] <= target:
            when, _, call = heapq.heappop(self._calls)
            self._now = max(self._now, when)
            if not call.cancelled:
                call.callback()
        self._now = target

    @property
    def scheduled(self) -> int:
        """Number of callbacks still waiting (cancelled ones excluded)."""
        return sum(1 for _, _, call in self._calls if not call.cancelled)
