"""
Scheduler - Delayed callbacks for the arena store.

The store never sleeps or spawns threads itself; it asks a Scheduler to run
a callback after a delay and keeps the returned token so the callback can
be cancelled. Hosts pick the implementation:

- ManualScheduler: deterministic virtual clock, advanced explicitly
  (tests, the terminal driver, replays)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import heapq
import itertools
from typing import Callable


class CancellationToken:
    """Handle for one scheduled callback."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class Scheduler(ABC):
    """Runs callbacks after a delay in milliseconds."""

    @abstractmethod
    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> CancellationToken:
        """Run ``callback`` once after ``delay_ms``; cancel via the token."""


@dataclass(order=True)
class _Pending:
    due_ms: int
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    token: CancellationToken = field(compare=False)


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler.

    Usage:
        scheduler = ManualScheduler()
        store = ArenaStore(reducer, scheduler)
        store.dispatch(Command.start_game(GameMode.SOLVER))
        scheduler.advance(1000)  # runs every callback due in the next second

    Callbacks due at the same instant run in the order they were scheduled.
    A callback may schedule new callbacks; those run within the same
    advance() if they fall due before its end.
    """

    def __init__(self, start_ms: int = 0):
        self.now_ms = start_ms
        self._queue: list[_Pending] = []
        self._sequence = itertools.count()

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> CancellationToken:
        token = CancellationToken()
        due = self.now_ms + max(0, int(delay_ms))
        heapq.heappush(self._queue, _Pending(due, next(self._sequence), callback, token))
        return token

    def advance(self, ms: int) -> int:
        """Move the clock forward, running due callbacks. Returns how many ran."""
        target = self.now_ms + max(0, int(ms))
        ran = 0
        while self._queue and self._queue[0].due_ms <= target:
            pending = heapq.heappop(self._queue)
            self.now_ms = pending.due_ms
            if pending.token.cancelled:
                continue
            pending.callback()
            ran += 1
        self.now_ms = target
        return ran

    def run_until_idle(self, limit_ms: int = 3_600_000) -> int:
        """Advance until no live callbacks remain or ``limit_ms`` passes."""
        ran = 0
        deadline = self.now_ms + limit_ms
        while self.pending_count and self.now_ms < deadline:
            next_due = min(p.due_ms for p in self._queue if not p.token.cancelled)
            ran += self.advance(min(next_due, deadline) - self.now_ms)
        return ran

    @property
    def pending_count(self) -> int:
        return sum(1 for p in self._queue if not p.token.cancelled)
