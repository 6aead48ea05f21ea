"""
Arena Store - Observable container for the current ArenaState.

The store owns the only mutable reference to the state:
- dispatch() runs a command through the reducer and commits the result
- update() commits an arbitrary state transform (host-side tooling)
- subscribers are notified synchronously, in subscription order, after
  every commit that changed the snapshot

Timer requests from the reducer are handed to the Scheduler here. Scheduling
a key replaces any pending callback for it, and cancellations run before new
requests, so each key has at most one live callback.
"""

from __future__ import annotations
from typing import Callable

from .state import ArenaState, TimerKey
from .command import Command, CommandResult
from .reducer import Reducer
from .scheduler import CancellationToken, Scheduler
from ..core.exceptions import StoreError
from ..core.logging import get_logger

logger = get_logger(__name__)

Subscriber = Callable[[ArenaState], None]


class ArenaStore:
    """
    Holds the current snapshot and routes commands to the reducer.

    Usage:
        store = ArenaStore(reducer, ManualScheduler())
        unsubscribe = store.subscribe(render)
        store.dispatch(Command.start_game(GameMode.SOLVER))
    """

    def __init__(
        self,
        reducer: Reducer,
        scheduler: Scheduler,
        initial_state: ArenaState | None = None,
    ):
        self.reducer = reducer
        self.scheduler = scheduler
        self._state = initial_state or reducer.initial_state()
        self._subscribers: list[Subscriber] = []
        self._updating = False
        self._version = 0

    @property
    def state(self) -> ArenaState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def update(self, transform: Callable[[ArenaState], ArenaState]) -> ArenaState:
        """Commit ``transform(state)``. Transforms may not update the store."""
        if self._updating:
            raise StoreError("Re-entrant store update")
        self._updating = True
        try:
            new_state = transform(self._state)
        finally:
            self._updating = False
        self._commit(new_state._copy_with(timer_tokens=dict(self._state.timer_tokens)))
        return self._state

    def dispatch(self, command: Command) -> CommandResult:
        """Apply a command; ignored commands leave state and subscribers alone."""
        if self._updating:
            raise StoreError(
                f"Re-entrant dispatch of {command.command_type.value}",
                details={"command": command.command_type.value},
            )
        self._updating = True
        try:
            result = self.reducer.apply(self._state, command)
        finally:
            self._updating = False

        if not result.success:
            return result

        if result.state_changes:
            logger.debug(
                "command_applied",
                command=command.command_type.value,
                changes=result.state_changes,
            )
        self._commit(self._apply_timers(result))
        return result

    def cancel_all_timers(self) -> None:
        """Cancel every pending callback (used when a host shuts down)."""
        for token in self._state.timer_tokens.values():
            token.cancel()
        self._state = self._state._copy_with(timer_tokens={})

    def _apply_timers(self, result: CommandResult) -> ArenaState:
        tokens: dict[TimerKey, CancellationToken] = dict(self._state.timer_tokens)

        for key in result.timer_cancellations:
            token = tokens.pop(key, None)
            if token is not None:
                token.cancel()

        for request in result.timer_requests:
            previous = tokens.pop(request.key, None)
            if previous is not None:
                previous.cancel()
            tokens[request.key] = self.scheduler.schedule(
                request.delay_ms, self._callback_for(request.command)
            )

        return result.new_state._copy_with(timer_tokens=tokens)

    def _callback_for(self, command: Command) -> Callable[[], None]:
        def fire() -> None:
            self.dispatch(command)

        return fire

    def _commit(self, new_state: ArenaState) -> None:
        previous = self._state
        self._state = new_state
        if new_state == previous:
            return
        self._version += 1
        version = self._version
        for subscriber in list(self._subscribers):
            # A subscriber dispatched; the nested commit delivered the newer snapshot.
            if self._version != version:
                break
            subscriber(new_state)
