"""
Config Validation - Cross-reference checks for arena content.

Field-level constraints (positive health, multipliers, ...) are enforced by
the pydantic models. This module validates what single models cannot:
1. Ids are unique
2. Every (mode, level) slot has at most one enemy and levels start at 1
3. Crafter enemies have a matching crafter level config
4. Bonuses and crafter levels have their predicates bound
5. Grades point at modes that have enemies
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass

from .models import ArenaConfig, GameMode
from ..core.exceptions import ConfigurationError


class ConfigValidationError(ConfigurationError):
    """Raised when arena content fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            f"Config validation failed with {len(errors)} error(s)",
            details={"errors": errors},
        )


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str]
    warnings: list[str]


def validate_config(config: ArenaConfig) -> ValidationResult:
    """
    Validate a complete arena configuration.

    Returns ValidationResult with errors and warnings; never raises.
    """
    errors: list[str] = []
    warnings: list[str] = []

    errors.extend(_duplicates("enemy id", [e.id for e in config.enemies]))
    errors.extend(_duplicates("bonus id", [b.id for b in config.bonuses]))
    errors.extend(_duplicates("grade", [g.grade for g in config.grades]))
    errors.extend(_duplicates("crafter level", [c.level for c in config.crafter_levels]))

    for mode in GameMode:
        enemies = config.enemies_for_mode(mode)
        errors.extend(
            _duplicates(f"{mode.value} enemy level", [e.level for e in enemies])
        )
        if enemies and config.get_enemy(mode, 1) is None:
            errors.append(f"Mode '{mode.value}' has enemies but none at level 1")
        levels = sorted({e.level for e in enemies})
        if levels and levels != list(range(1, levels[-1] + 1)):
            warnings.append(f"Mode '{mode.value}' has gaps in its enemy levels: {levels}")

    for enemy in config.enemies_for_mode(GameMode.CRAFTER):
        if config.get_crafter_level(enemy.level) is None:
            errors.append(
                f"Crafter enemy '{enemy.id}' is at level {enemy.level} "
                f"but no crafter level config exists"
            )

    for level_config in config.crafter_levels:
        if level_config.validator is None:
            errors.append(f"Crafter level {level_config.level} has no structure validator")
        if not level_config.allowed_chars:
            warnings.append(f"Crafter level {level_config.level} allows no characters")

    for bonus in config.bonuses:
        if bonus.check is None:
            errors.append(f"Bonus '{bonus.id}' has no check bound")
        if bonus.mode == GameMode.SOLVER:
            warnings.append(f"Bonus '{bonus.id}' targets solver mode and will never apply")

    for grade in config.grades:
        if not config.enemies_for_mode(grade.mode):
            errors.append(
                f"Grade {grade.grade} plays '{grade.mode.value}' but that mode has no enemies"
            )

    if not config.grades:
        warnings.append("No grades defined")
    if not config.enemies:
        warnings.append("No enemies defined - nothing can be started")

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _duplicates(label: str, values: list) -> list[str]:
    return [
        f"Duplicate {label} '{value}'"
        for value, count in Counter(values).items()
        if count > 1
    ]
