"""
Configuration Models - Static content consumed by the engine.

Grades, enemies, bonuses and crafter levels are supplied from outside the
engine (hand-authored tables or JSON content files). They are validated on
construction and never mutated afterwards.

Predicates (bonus checks, crafter level validators) are plain callables.
They are excluded from serialization; content loaded from JSON gets them
bound from registries keyed by bonus id and crafter level.
"""

from __future__ import annotations
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GameMode(str, Enum):
    """Equation interaction mode."""
    SOLVER = "solver"
    CRAFTER = "crafter"


BonusCheck = Callable[[str, str, float], bool]
StructureValidator = Callable[[str], bool]


class GradeConfig(BaseModel):
    """A selectable grade and the mode it plays."""
    model_config = ConfigDict(frozen=True)

    grade: int = Field(ge=0)
    label: str
    mode: GameMode
    description: str = ""


class EnemyConfig(BaseModel):
    """An enemy encounter, bound to one (mode, level) slot."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    health: int = Field(gt=0)
    attack_interval_ms: int = Field(gt=0, description="Time between enemy attacks")
    solve_time_seconds: int = Field(gt=0, description="Total time budget for the level")
    damage: int = Field(ge=0)
    mode: GameMode
    level: int = Field(ge=1)


class BonusConfig(BaseModel):
    """
    A reward-worthy equation pattern.

    ``check(crafted_equation, player_answer, numeric_result)`` decides
    applicability. ``level=None`` means every level of the mode.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = ""
    description: str
    power_multiplier: float = Field(gt=0)
    mode: GameMode = GameMode.CRAFTER
    level: Optional[int] = Field(default=None, ge=1)
    check: Optional[BonusCheck] = Field(default=None, exclude=True, repr=False)


class CrafterLevelConfig(BaseModel):
    """Input rules for one crafter level."""
    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1)
    description: str
    allowed_chars: tuple[str, ...]
    validator: Optional[StructureValidator] = Field(default=None, exclude=True, repr=False)

    @field_validator("allowed_chars")
    @classmethod
    def _single_characters(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for char in value:
            if len(char) != 1:
                raise ValueError(f"allowed_chars entries must be single characters, got {char!r}")
        return value

    def validate_structure(self, equation: str) -> bool:
        """Run the structural gate; a level without a validator never passes."""
        if self.validator is None:
            return False
        return bool(self.validator(equation))


class ArenaConfig(BaseModel):
    """
    Complete content configuration.

    Lookups return None when nothing matches; callers decide how to degrade.
    """
    model_config = ConfigDict(frozen=True)

    grades: tuple[GradeConfig, ...] = ()
    enemies: tuple[EnemyConfig, ...] = ()
    bonuses: tuple[BonusConfig, ...] = ()
    crafter_levels: tuple[CrafterLevelConfig, ...] = ()

    def get_grade(self, grade: int) -> GradeConfig | None:
        for g in self.grades:
            if g.grade == grade:
                return g
        return None

    def get_enemy(self, mode: GameMode, level: int) -> EnemyConfig | None:
        """Exact (mode, level) lookup used by normal progression."""
        for enemy in self.enemies:
            if enemy.mode == mode and enemy.level == level:
                return enemy
        return None

    def enemies_for_mode(self, mode: GameMode) -> list[EnemyConfig]:
        return [e for e in self.enemies if e.mode == mode]

    def get_crafter_level(self, level: int) -> CrafterLevelConfig | None:
        for config in self.crafter_levels:
            if config.level == level:
                return config
        return None

    def max_level(self, mode: GameMode) -> int:
        """Highest level with an enemy for the mode (0 if none)."""
        return max((e.level for e in self.enemies_for_mode(mode)), default=0)
