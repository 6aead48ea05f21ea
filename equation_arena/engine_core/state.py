"""
Arena State - The single source of truth for one playthrough.

Design principles:
- Immutable snapshots: the reducer returns a new ArenaState per transition
- Only the reducer creates new snapshots; the presentation layer reads them
- Collections are immutable (tuple / frozenset) or copied on write (dict)
- Timer tokens live here only so transitions can cancel pending callbacks
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any

from ..config_schema.models import BonusConfig, EnemyConfig, GameMode


class GameStatus(Enum):
    """Arena state machine states."""
    PRE_GAME = "PRE_GAME"
    TUTORIAL = "TUTORIAL"
    SOLVING = "SOLVING"
    RESULT = "RESULT"
    GAME_OVER = "GAME_OVER"
    FINAL_SUMMARY = "FINAL_SUMMARY"


class CrafterSubMode(Enum):
    NORMAL = "normal"
    CHALLENGE = "challenge"


class SpellType(Enum):
    FIRE = "FIRE"
    ICE = "ICE"


class OperationType(IntEnum):
    ADDITION = 1
    SUBTRACTION = 2
    MULTIPLICATION = 3
    DIVISION = 4


class TimerKey(Enum):
    """Scheduled callbacks the engine may have pending."""
    ATTACK = "attack"
    FREEZE = "freeze"
    FEEDBACK = "feedback"
    RESULT = "result"


VICTORY_MESSAGE = "Victory!"
DEFEAT_MESSAGE = "Defeat!"
TIME_OUT_MESSAGE = "Time Out!"
DUPLICATE_EQUATION_MESSAGE = "Equation already used!"


@dataclass(frozen=True)
class CrafterFeedback:
    """What the feedback pause shows after a wrong crafted answer."""
    incorrect_equation: str
    incorrect_value: str
    correct_value: float | None = None
    steps: tuple[str, ...] = ()
    message: str = ""


@dataclass(frozen=True)
class CompletedLevel:
    level_number: int
    score: int
    bonus_ids: tuple[str, ...] = ()
    enemy_id: str | None = None


@dataclass(frozen=True)
class EnemyScaling:
    """Challenge-mode difficulty counters for one enemy."""
    health_scale_level: int = 0
    interval_scale_level: int = 0


@dataclass(frozen=True)
class ArenaState:
    """
    Complete arena state at a point in time.

    Time values are kept in milliseconds so tick arithmetic stays exact.
    """
    # Vitals
    player_health: int = 100
    max_player_health: int = 100
    enemy_health: int = 100
    max_enemy_health: int = 100

    # Timing
    attack_time_remaining_ms: int = 20_000
    max_attack_time_ms: int = 20_000
    level_time_remaining_ms: int = 90_000
    max_level_time_ms: int = 90_000
    is_timer_frozen: bool = False
    timer_freeze_duration_remaining_ms: int | None = None
    is_shield_active: bool = False

    # Mode and status
    game_status: GameStatus = GameStatus.PRE_GAME
    game_mode: GameMode | None = None
    crafter_sub_mode: CrafterSubMode | None = None
    selected_grade: int | None = None

    # Solver fields
    current_equation: str = ""
    expected_answer: float = 0
    current_operation_type: OperationType = OperationType.ADDITION
    player_input: str = ""

    # Crafter fields
    crafted_equation_string: str = ""
    is_crafting_phase: bool = False
    allowed_crafter_chars: tuple[str, ...] | None = None
    is_crafted_equation_valid_for_level: bool = False
    used_crafted_equations: frozenset[str] = frozenset()
    evaluation_error: str | None = None
    is_feedback_active: bool = False
    feedback_id: int = 0
    crafter_feedback: CrafterFeedback | None = None

    # Combat
    selected_spell: SpellType | None = None
    active_bonuses: tuple[BonusConfig, ...] = ()
    consecutive_wrong_answers: int = 0
    enemy_just_defeated: bool = False
    result_message: str = ""
    last_answer_correct: bool | None = None
    last_spell_cast: SpellType | None = None
    last_player_input: str = ""
    last_full_equation: str = ""
    last_damage_dealt: int = 0
    equations_solved_correctly: int = 0

    # Progression
    current_level_number: int = 1
    current_enemy_id: str | None = None
    current_enemy_config: EnemyConfig | None = None
    previous_enemy_id: str | None = None
    challenge_encounters: int = 0
    current_level_score: int = 0
    total_game_score: int = 0
    level_bonuses_used_this_level: frozenset[str] = frozenset()
    current_level_bonuses: tuple[BonusConfig, ...] = ()
    completed_levels_data: tuple[CompletedLevel, ...] = ()
    challenge_enemy_scaling: dict[str, EnemyScaling] = field(default_factory=dict)

    # Tutorial
    tutorial_step: int = 0
    needs_crafter_tutorial: bool = True
    crafter_normal_completed: bool = False

    # Pending scheduler callbacks (TimerKey -> cancellation token)
    timer_tokens: dict[TimerKey, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_victory(self) -> bool:
        return (
            self.game_status in {GameStatus.GAME_OVER, GameStatus.FINAL_SUMMARY}
            and self.result_message != DEFEAT_MESSAGE
            and self.result_message != TIME_OUT_MESSAGE
            and self.enemy_health <= 0
        )

    @property
    def is_terminal(self) -> bool:
        return self.game_status in {GameStatus.GAME_OVER, GameStatus.FINAL_SUMMARY}

    @property
    def is_challenge(self) -> bool:
        return self.game_mode == GameMode.CRAFTER and self.crafter_sub_mode == CrafterSubMode.CHALLENGE

    @property
    def attack_time_remaining(self) -> float:
        """Seconds until the next enemy attack."""
        return self.attack_time_remaining_ms / 1000

    @property
    def max_attack_time(self) -> float:
        return self.max_attack_time_ms / 1000

    def _copy_with(self, **kwargs) -> ArenaState:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)
