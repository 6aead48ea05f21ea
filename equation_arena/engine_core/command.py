"""
Command System - Commands, payloads, and results.

Commands represent:
1. Player input (digits, crafted characters, spell selection, casting)
2. Lifecycle transitions (start, tutorial, next round, level advance, reset)
3. Timer ticks and delayed callbacks issued by the scheduler

All state changes flow through commands.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .state import CrafterSubMode, SpellType, TimerKey
from ..config_schema.models import GameMode


class CommandType(Enum):
    """Types of commands in the system."""
    # Setup
    SET_GRADE = "set_grade"
    SET_GAME_MODE = "set_game_mode"
    SET_PROGRESS = "set_progress"
    START_GAME = "start_game"

    # Solver / answer entry
    HANDLE_INPUT = "handle_input"
    CLEAR_INPUT = "clear_input"
    HANDLE_BACKSPACE = "handle_backspace"

    # Crafter
    APPEND_TO_CRAFTED_EQUATION = "append_to_crafted_equation"
    BACKSPACE_CRAFTED_EQUATION = "backspace_crafted_equation"
    CLEAR_CRAFTED_EQUATION = "clear_crafted_equation"
    FINALIZE_CRAFTING = "finalize_crafting"
    RESET_CRAFTER_STATE = "reset_crafter_state"

    # Combat
    SELECT_SPELL = "select_spell"
    CAST_SPELL = "cast_spell"
    RECEIVE_PLAYER_DAMAGE = "receive_player_damage"

    # Timers and delayed callbacks
    TICK_ATTACK_TIMER = "tick_attack_timer"
    TICK_TIMER_FREEZE = "tick_timer_freeze"
    EXPIRE_FEEDBACK = "expire_feedback"

    # Tutorial
    ADVANCE_TUTORIAL = "advance_tutorial"
    SKIP_TUTORIAL_AND_START = "skip_tutorial_and_start"

    # Round / level lifecycle
    PREPARE_NEXT_ROUND = "prepare_next_round"
    FINALIZE_VICTORY = "finalize_victory"
    ADVANCE_LEVEL_AND_START = "advance_level_and_start"
    RESET = "reset"
    FULL_RESET = "full_reset"


@dataclass(frozen=True)
class CommandPayload:
    """
    Parameters for a command.

    Different command types use different fields; validation happens in
    the reducer. None means "use the engine setting".
    """
    grade: int | None = None
    mode: GameMode | None = None
    sub_mode: CrafterSubMode | None = None
    char: str | None = None
    spell: SpellType | None = None
    amount: int | None = None
    elapsed_ms: int | None = None
    feedback_id: int | None = None
    completed: bool | None = None

    # castSpell tuning overrides
    tolerance: int | None = None
    penalty: int | None = None
    fire_damage: int | None = None
    feedback_duration_ms: int | None = None


@dataclass(frozen=True)
class Command:
    """A complete command to be applied to the arena state."""
    command_type: CommandType
    payload: CommandPayload = field(default_factory=CommandPayload)

    @classmethod
    def set_grade(cls, grade: int) -> Command:
        return cls(CommandType.SET_GRADE, CommandPayload(grade=grade))

    @classmethod
    def set_game_mode(cls, mode: GameMode) -> Command:
        return cls(CommandType.SET_GAME_MODE, CommandPayload(mode=GameMode(mode)))

    @classmethod
    def set_progress(cls, crafter_normal_completed: bool) -> Command:
        return cls(CommandType.SET_PROGRESS, CommandPayload(completed=crafter_normal_completed))

    @classmethod
    def start_game(
        cls,
        mode: GameMode | None = None,
        sub_mode: CrafterSubMode | None = None,
    ) -> Command:
        return cls(
            CommandType.START_GAME,
            CommandPayload(
                mode=GameMode(mode) if mode is not None else None,
                sub_mode=CrafterSubMode(sub_mode) if sub_mode is not None else None,
            ),
        )

    @classmethod
    def handle_input(cls, value: str | int) -> Command:
        return cls(CommandType.HANDLE_INPUT, CommandPayload(char=str(value)))

    @classmethod
    def clear_input(cls) -> Command:
        return cls(CommandType.CLEAR_INPUT)

    @classmethod
    def handle_backspace(cls) -> Command:
        return cls(CommandType.HANDLE_BACKSPACE)

    @classmethod
    def append_to_crafted_equation(cls, char: str) -> Command:
        return cls(CommandType.APPEND_TO_CRAFTED_EQUATION, CommandPayload(char=char))

    @classmethod
    def backspace_crafted_equation(cls) -> Command:
        return cls(CommandType.BACKSPACE_CRAFTED_EQUATION)

    @classmethod
    def clear_crafted_equation(cls) -> Command:
        return cls(CommandType.CLEAR_CRAFTED_EQUATION)

    @classmethod
    def finalize_crafting(cls) -> Command:
        return cls(CommandType.FINALIZE_CRAFTING)

    @classmethod
    def reset_crafter_state(cls) -> Command:
        return cls(CommandType.RESET_CRAFTER_STATE)

    @classmethod
    def select_spell(cls, spell: SpellType) -> Command:
        return cls(CommandType.SELECT_SPELL, CommandPayload(spell=SpellType(spell)))

    @classmethod
    def cast_spell(
        cls,
        tolerance: int | None = None,
        penalty: int | None = None,
        fire_damage: int | None = None,
        feedback_duration_ms: int | None = None,
    ) -> Command:
        return cls(
            CommandType.CAST_SPELL,
            CommandPayload(
                tolerance=tolerance,
                penalty=penalty,
                fire_damage=fire_damage,
                feedback_duration_ms=feedback_duration_ms,
            ),
        )

    @classmethod
    def receive_player_damage(cls, amount: int) -> Command:
        return cls(CommandType.RECEIVE_PLAYER_DAMAGE, CommandPayload(amount=amount))

    @classmethod
    def tick_attack_timer(cls) -> Command:
        return cls(CommandType.TICK_ATTACK_TIMER)

    @classmethod
    def tick_timer_freeze(cls, elapsed_ms: int) -> Command:
        return cls(CommandType.TICK_TIMER_FREEZE, CommandPayload(elapsed_ms=elapsed_ms))

    @classmethod
    def expire_feedback(cls, feedback_id: int) -> Command:
        return cls(CommandType.EXPIRE_FEEDBACK, CommandPayload(feedback_id=feedback_id))

    @classmethod
    def advance_tutorial(cls) -> Command:
        return cls(CommandType.ADVANCE_TUTORIAL)

    @classmethod
    def skip_tutorial_and_start(cls) -> Command:
        return cls(CommandType.SKIP_TUTORIAL_AND_START)

    @classmethod
    def prepare_next_round(cls) -> Command:
        return cls(CommandType.PREPARE_NEXT_ROUND)

    @classmethod
    def finalize_victory(cls) -> Command:
        return cls(CommandType.FINALIZE_VICTORY)

    @classmethod
    def advance_level_and_start(cls) -> Command:
        return cls(CommandType.ADVANCE_LEVEL_AND_START)

    @classmethod
    def reset(cls) -> Command:
        return cls(CommandType.RESET)

    @classmethod
    def full_reset(cls) -> Command:
        return cls(CommandType.FULL_RESET)


@dataclass(frozen=True)
class TimerRequest:
    """Ask the container to run ``command`` after ``delay_ms``."""
    key: TimerKey
    delay_ms: int
    command: Command


@dataclass
class CommandResult:
    """
    Result of applying a command.

    Contains:
    - Whether the command changed anything
    - The new state (if it did)
    - Why it was ignored or failed (if it was)
    - Timers to schedule and timer keys to cancel
    """
    success: bool
    new_state: Any | None = None  # ArenaState
    error: str | None = None
    error_code: str | None = None

    # For presentation / logging
    state_changes: list[str] = field(default_factory=list)

    # For the container's scheduler
    timer_requests: list[TimerRequest] = field(default_factory=list)
    timer_cancellations: list[TimerKey] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> CommandResult:
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def ignored(cls, reason: str) -> CommandResult:
        """Precondition not met; state stays as it is."""
        return cls(success=False, error=reason, error_code="IGNORED")

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
        timers: list[TimerRequest] | None = None,
        cancel: list[TimerKey] | None = None,
    ) -> CommandResult:
        return cls(
            success=True,
            new_state=state,
            state_changes=changes or [],
            timer_requests=timers or [],
            timer_cancellations=cancel or [],
        )
