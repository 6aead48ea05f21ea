"""
Engine Settings - Tuning values for combat, timers and persistence.

Defaults match the shipped content. Every value can be overridden from the
environment with an ``ARENA_`` prefix:

    ARENA_TICK_INTERVAL_MS          Attack timer tick quantum (ms)
    ARENA_FIRE_DAMAGE               Base FIRE spell damage
    ARENA_WRONG_ANSWER_TOLERANCE    Wrong answers tolerated before a penalty
    ARENA_WRONG_ANSWER_PENALTY      Health lost when the tolerance is exceeded
    ARENA_FEEDBACK_DURATION_MS      Crafter feedback pause length
    ARENA_DUPLICATE_FEEDBACK_MS     "Equation already used!" display time
    ARENA_RESULT_DISPLAY_DELAY_MS   Delay before the next round after a cast
    ARENA_FREEZE_DURATION_MS        ICE timer-freeze length
    ARENA_ICE_EFFECT                "freeze" or "shield"
    ARENA_AUTO_ADVANCE_RESULTS      Schedule the post-result transition (true/false)
    ARENA_PROGRESS_PATH             JSON file for persisted progress
    ARENA_LOG_LEVEL                 Logging level
    ARENA_SEED                      Seed for the engine random generator
"""

from __future__ import annotations
from enum import Enum

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


ENV_PREFIX = "ARENA_"


class IceEffect(str, Enum):
    """What a successful ICE cast does."""
    FREEZE = "freeze"  # Pause the attack countdown for a fixed duration
    SHIELD = "shield"  # Absorb the next enemy attack


class EngineSettings(BaseSettings):
    """Tuning values consumed by the reducer and the session."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    tick_interval_ms: int = 100
    fire_damage: int = Field(default=25, ge=0)
    wrong_answer_tolerance: int = 2
    wrong_answer_penalty: int = Field(default=10, ge=0)
    feedback_duration_ms: int = Field(default=3000, ge=0)
    duplicate_feedback_ms: int = Field(default=1500, ge=0)
    result_display_delay_ms: int = Field(default=1500, ge=0)
    freeze_duration_ms: int = Field(default=5000, ge=0)
    ice_effect: IceEffect = IceEffect.FREEZE
    auto_advance_results: bool = True
    max_answer_length: int = Field(default=5, gt=0)
    player_max_health: int = 100
    min_attack_interval_ms: int = Field(default=2000, ge=0)
    min_solve_time_seconds: int = Field(default=10, ge=0)
    float_tolerance: float = Field(default=1e-9, gt=0)
    progress_path: str | None = None
    log_level: str = "INFO"
    seed: int | None = None

    @model_validator(mode="after")
    def check_engine_bounds(self) -> EngineSettings:
        """Reject values the reducer cannot run with.

        Raises:
            ConfigurationError: If a timer quantum, health or tolerance is out of range.
        """
        if self.tick_interval_ms <= 0:
            raise ConfigurationError(
                "tick_interval_ms must be positive", config_key="tick_interval_ms"
            )
        if self.player_max_health <= 0:
            raise ConfigurationError(
                "player_max_health must be positive", config_key="player_max_health"
            )
        if self.wrong_answer_tolerance < 0:
            raise ConfigurationError(
                "wrong_answer_tolerance must be >= 0", config_key="wrong_answer_tolerance"
            )
        return self

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Build settings from ``ARENA_*`` variables, falling back to defaults."""
        try:
            return cls()
        except ValidationError as e:
            errors = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]
            raise ConfigurationError(
                "Invalid ARENA_* environment settings", details={"errors": errors}
            ) from e
