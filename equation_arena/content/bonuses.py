"""Crafter bonuses and the checks bound to them."""

from ..config_schema.models import BonusConfig, GameMode
from ..engine_core.bonus import check_benchmark, check_distributive, check_place_value


DEFAULT_BONUSES = (
    BonusConfig(
        id="distributive",
        name="Distributive Power",
        description="Multiply a number by a sum or difference in parentheses.",
        power_multiplier=2.0,
        mode=GameMode.CRAFTER,
        level=1,
        check=check_distributive,
    ),
    BonusConfig(
        id="benchmark",
        name="Benchmark Fraction",
        description="Answer with a benchmark fraction (1/4, 1/3, 1/2, 2/3, 3/4 or 1).",
        power_multiplier=1.5,
        mode=GameMode.CRAFTER,
        level=2,
        check=check_benchmark,
    ),
    BonusConfig(
        id="place_value",
        name="Place Value Shift",
        description="Multiply a decimal by a power of ten.",
        power_multiplier=1.5,
        mode=GameMode.CRAFTER,
        level=3,
        check=check_place_value,
    ),
)
