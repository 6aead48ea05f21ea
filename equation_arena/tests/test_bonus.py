"""
Tests for the bonus engine.
"""

import pytest

from ..config_schema.models import BonusConfig, GameMode
from ..engine_core.bonus import (
    damage_multiplier,
    get_active_bonuses,
    has_place_value_operation,
    is_benchmark_answer,
    is_distributive,
)
from ..engine_core.expression import parse_equation


class TestDistributive:
    """Constant times a parenthesized two-term sum or difference."""

    @pytest.mark.parametrize("equation", ["3×(2+4)", "(5-1)×2", "(3×(2+4))"])
    def test_detected(self, equation):
        assert is_distributive(parse_equation(equation))

    @pytest.mark.parametrize("equation", ["3+(2+4)", "3×(2+4+1)", "(2+4)", "3×4", "(1+2)×(3+4)"])
    def test_not_detected(self, equation):
        assert not is_distributive(parse_equation(equation))

    def test_unparseable(self):
        assert not is_distributive(None)


class TestBenchmark:
    @pytest.mark.parametrize("answer", ["1/2", "3/4", "2/3", "1", "0.5", "2/4"])
    def test_benchmark_answers(self, answer):
        assert is_benchmark_answer(answer)

    @pytest.mark.parametrize("answer", ["5/6", "0.8", "2", "", "/"])
    def test_other_answers(self, answer):
        assert not is_benchmark_answer(answer)


class TestPlaceValue:
    def test_multiply_by_ten(self):
        assert has_place_value_operation(parse_equation("0.5×10"))

    def test_one_counts_as_power_of_ten(self):
        """10^0 = 1 qualifies."""
        assert has_place_value_operation(parse_equation("2.5×1"))

    def test_addition_does_not_count(self):
        assert not has_place_value_operation(parse_equation("0.5+10"))

    def test_nested_operation(self):
        assert has_place_value_operation(parse_equation("1.5+0.3×100"))


class TestGetActiveBonuses:
    """Filtering by mode and level, in configuration order."""

    def test_solver_mode_gets_nothing(self, arena_config):
        assert get_active_bonuses("3×(2+4)", "18", 18.0, 1, GameMode.SOLVER, arena_config.bonuses) == []

    def test_level_scoping(self, arena_config):
        """The distributive bonus only applies at level 1."""
        at_level_1 = get_active_bonuses(
            "3×(2+4)", "18", 18.0, 1, GameMode.CRAFTER, arena_config.bonuses
        )
        assert [b.id for b in at_level_1] == ["distributive"]
        at_level_3 = get_active_bonuses(
            "3×(2+4)", "18", 18.0, 3, GameMode.CRAFTER, arena_config.bonuses
        )
        assert at_level_3 == []

    def test_benchmark_not_awarded_for_five_sixths(self, arena_config):
        """1/2+1/3 = 5/6 is not a benchmark answer."""
        assert get_active_bonuses(
            "1/2+1/3", "5/6", 5 / 6, 2, GameMode.CRAFTER, arena_config.bonuses
        ) == []

    def test_unleveled_bonus_applies_everywhere(self):
        """A bonus without a level applies at every crafter level."""
        bonus = BonusConfig(
            id="always", description="Always", power_multiplier=1.2,
            check=lambda equation, answer, result: True,
        )
        assert get_active_bonuses("1+1", "2", 2.0, 3, GameMode.CRAFTER, [bonus]) == [bonus]

    def test_unknown_bonus_without_check_is_skipped(self):
        bonus = BonusConfig(id="mystery", description="?", power_multiplier=3.0)
        assert get_active_bonuses("1+1", "2", 2.0, 1, GameMode.CRAFTER, [bonus]) == []


class TestDamageMultiplier:
    def test_multipliers_compound(self):
        """[2, 1.5] compounds to 3."""
        bonuses = [
            BonusConfig(id="a", description="a", power_multiplier=2.0),
            BonusConfig(id="b", description="b", power_multiplier=1.5),
        ]
        assert damage_multiplier(bonuses) == 3.0
        assert round(25 * damage_multiplier(bonuses)) == 75

    def test_no_bonuses(self):
        assert damage_multiplier([]) == 1.0
