"""
Arena Session - Wires the engine together for one player.

The session:
1. Validates the content config (fails fast at startup)
2. Reads persisted progress and seeds the initial state from it
3. Builds reducer, scheduler and store
4. Persists the "crafter normal mode completed" flag when it first appears
5. Exposes dispatch() for player input and advance() for virtual time

Usage:
    session = ArenaSession()
    session.dispatch(Command.set_grade(1))
    session.dispatch(Command.start_game())
    session.dispatch(Command.handle_input("7"))
    session.dispatch(Command.cast_spell())
    session.advance(1500)  # result delay elapses, next round starts
"""

from __future__ import annotations
import random
import uuid

from ..config_schema import ArenaConfig, ConfigValidationError, validate_config
from ..content import create_default_config
from ..core.logging import bind_context, clear_context, get_logger
from ..core.settings import EngineSettings
from ..engine_core.command import Command, CommandResult
from ..engine_core.reducer import Reducer
from ..engine_core.scheduler import ManualScheduler, Scheduler
from ..engine_core.state import ArenaState
from ..engine_core.store import ArenaStore
from .progress import ProgressStore

logger = get_logger(__name__)


class ArenaSession:
    """One player's arena: store, scheduler and persisted progress."""

    def __init__(
        self,
        config: ArenaConfig | None = None,
        settings: EngineSettings | None = None,
        scheduler: Scheduler | None = None,
        progress: ProgressStore | None = None,
        rng: random.Random | None = None,
        session_id: str | None = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.settings = settings or EngineSettings()
        self.config = config or create_default_config()

        validation = validate_config(self.config)
        if not validation.valid:
            raise ConfigValidationError(validation.errors)
        for warning in validation.warnings:
            logger.warning("config_warning", warning=warning)

        self.progress = progress or ProgressStore(self.settings.progress_path)
        self.scheduler = scheduler or ManualScheduler()
        self.reducer = Reducer(config=self.config, settings=self.settings, rng=rng)

        completed = self.progress.crafter_normal_completed()
        self.store = ArenaStore(
            self.reducer, self.scheduler, self.reducer.initial_state(completed)
        )
        self._progress_saved = completed
        self._unsubscribe = self.store.subscribe(self._persist_progress)

        bind_context(session_id=self.session_id)
        logger.info("session_created", crafter_normal_completed=completed)

    @property
    def state(self) -> ArenaState:
        return self.store.state

    def dispatch(self, command: Command) -> CommandResult:
        return self.store.dispatch(command)

    def advance(self, ms: int) -> int:
        """Advance virtual time; only available with a ManualScheduler."""
        if not isinstance(self.scheduler, ManualScheduler):
            raise TypeError("advance() requires a ManualScheduler")
        return self.scheduler.advance(ms)

    def close(self) -> None:
        """Stop pending timers and detach from the store."""
        self.store.cancel_all_timers()
        self._unsubscribe()
        logger.info("session_closed")
        clear_context()

    def _persist_progress(self, state: ArenaState) -> None:
        if state.crafter_normal_completed and not self._progress_saved:
            self._progress_saved = self.progress.mark_crafter_normal_completed()
