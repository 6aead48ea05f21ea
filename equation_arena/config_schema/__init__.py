"""Arena content schema - grades, enemies, bonuses and crafter levels."""

from .models import (
    ArenaConfig,
    BonusConfig,
    CrafterLevelConfig,
    EnemyConfig,
    GameMode,
    GradeConfig,
)
from .validation import validate_config, ValidationResult, ConfigValidationError

__all__ = [
    "ArenaConfig",
    "BonusConfig",
    "CrafterLevelConfig",
    "EnemyConfig",
    "GameMode",
    "GradeConfig",
    "validate_config",
    "ValidationResult",
    "ConfigValidationError",
]
