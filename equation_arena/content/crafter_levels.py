"""Crafter level rules: allowed keys and the structural gate for submission."""

from ..config_schema.models import CrafterLevelConfig
from ..engine_core.crafting import validate_level_1, validate_level_2, validate_level_3

DIGITS = tuple("0123456789")


DEFAULT_CRAFTER_LEVELS = (
    CrafterLevelConfig(
        level=1,
        description="Use parentheses for order of operations.",
        allowed_chars=DIGITS + ("+", "-", "×", "(", ")"),
        validator=validate_level_1,
    ),
    CrafterLevelConfig(
        level=2,
        description="Add or subtract fractions with different denominators.",
        allowed_chars=DIGITS + ("+", "-", "/"),
        validator=validate_level_2,
    ),
    CrafterLevelConfig(
        level=3,
        description="Create an equation using decimals.",
        allowed_chars=DIGITS + ("+", "-", "×", "."),
        validator=validate_level_3,
    ),
)
