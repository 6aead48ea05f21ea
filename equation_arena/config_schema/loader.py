"""
Config Loader - Arena content from JSON files.

The document mirrors ArenaConfig:

    {
      "grades": [{"grade": 5, "label": "Grade 5", "mode": "crafter"}],
      "enemies": [{"id": "goblin", "name": "Goblin", "health": 100, ...}],
      "bonuses": [{"id": "benchmark", "description": "...", "power_multiplier": 1.5}],
      "crafter_levels": [{"level": 1, "description": "...", "allowed_chars": ["1", "+"]}]
    }

Predicates cannot be expressed in JSON. Bonus checks are bound by bonus id
and crafter level validators by level number; content that names an
unknown id keeps ``None`` and is reported by validate_config.
"""

from __future__ import annotations
import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models import ArenaConfig
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger

logger = get_logger(__name__)


def load_config_file(path: str | Path) -> ArenaConfig:
    """Read and bind an ArenaConfig from a JSON file."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}", config_key=str(path)) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Config file is not valid JSON: {path} ({e.msg} at line {e.lineno})",
            config_key=str(path),
        ) from e
    return load_config_data(raw)


def load_config_data(data: dict[str, Any]) -> ArenaConfig:
    """Validate a decoded document and bind its predicates."""
    try:
        config = ArenaConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Config document failed schema validation",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e
    return bind_predicates(config)


def bind_predicates(config: ArenaConfig) -> ArenaConfig:
    """Attach registry predicates to bonuses and crafter levels lacking one."""
    from ..engine_core.bonus import BONUS_CHECKS
    from ..engine_core.crafting import CRAFTER_VALIDATORS

    bonuses = []
    for bonus in config.bonuses:
        if bonus.check is None:
            check = BONUS_CHECKS.get(bonus.id)
            if check is None:
                logger.warning("bonus_check_unknown", bonus_id=bonus.id)
            bonus = bonus.model_copy(update={"check": check})
        bonuses.append(bonus)

    levels = []
    for level_config in config.crafter_levels:
        if level_config.validator is None:
            validator = CRAFTER_VALIDATORS.get(level_config.level)
            if validator is None:
                logger.warning("crafter_validator_unknown", level=level_config.level)
            level_config = level_config.model_copy(update={"validator": validator})
        levels.append(level_config)

    return config.model_copy(
        update={"bonuses": tuple(bonuses), "crafter_levels": tuple(levels)}
    )
