"""
Bonus Engine - Detects reward-worthy patterns in crafted equations.

Each bonus check receives (crafted_equation, player_answer, numeric_result)
and inspects the parsed expression tree and/or the answer:

- distributive: the root is a multiplication of a constant and a
  parenthesized sum/difference of two terms, in either order
- benchmark: the player's answer is a benchmark fraction
  (1/4, 1/3, 1/2, 2/3, 3/4 or 1)
- place_value: some multiplication/division has a power-of-ten operand

Bonuses apply only in crafter mode. Their multipliers compound on FIRE
damage.
"""

from __future__ import annotations
from typing import Iterable
import math

from .expression import (
    BinaryOp,
    Negate,
    Node,
    Number,
    Paren,
    iter_nodes,
    parse_equation,
    try_evaluate,
    unwrap_parens,
)
from ..config_schema.models import BonusConfig, GameMode
from ..core.exceptions import ArenaError
from ..core.logging import get_logger

logger = get_logger(__name__)


FLOAT_TOLERANCE = 1e-9
BENCHMARK_FRACTIONS = (1 / 4, 1 / 3, 1 / 2, 2 / 3, 3 / 4, 1.0)


def _is_constant(node: Node) -> bool:
    node = unwrap_parens(node)
    if isinstance(node, Negate):
        return _is_constant(node.operand)
    return isinstance(node, Number)


def _is_two_term_group(node: Node) -> bool:
    if not isinstance(node, Paren):
        return False
    inner = unwrap_parens(node)
    if not (isinstance(inner, BinaryOp) and inner.op in "+-"):
        return False
    return all(
        not (isinstance(side, BinaryOp) and side.op in "+-")
        for side in (inner.left, inner.right)
    )


def is_distributive(tree: Node | None) -> bool:
    if tree is None:
        return False
    root = unwrap_parens(tree)
    if not (isinstance(root, BinaryOp) and root.op == "*"):
        return False
    return (
        (_is_constant(root.left) and _is_two_term_group(root.right))
        or (_is_two_term_group(root.left) and _is_constant(root.right))
    )


def is_power_of_ten(value: float) -> bool:
    if value <= 0 or not math.isfinite(value):
        return False
    exponent = math.log10(value)
    return abs(exponent - round(exponent)) < FLOAT_TOLERANCE


def has_place_value_operation(tree: Node | None) -> bool:
    if tree is None:
        return False
    for node in iter_nodes(tree):
        if isinstance(node, BinaryOp) and node.op in "*/":
            for operand in (node.left, node.right):
                try:
                    value = float(operand.evaluate())
                except ArenaError:
                    continue
                if is_power_of_ten(value):
                    return True
    return False


def is_benchmark_answer(answer: str) -> bool:
    value = try_evaluate(answer)
    if value is None:
        return False
    return any(abs(value - b) < FLOAT_TOLERANCE for b in BENCHMARK_FRACTIONS)


def check_distributive(equation: str, answer: str, result: float) -> bool:
    return is_distributive(parse_equation(equation))


def check_benchmark(equation: str, answer: str, result: float) -> bool:
    return is_benchmark_answer(answer)


def check_place_value(equation: str, answer: str, result: float) -> bool:
    return has_place_value_operation(parse_equation(equation))


BONUS_CHECKS = {
    "distributive": check_distributive,
    "benchmark": check_benchmark,
    "place_value": check_place_value,
}


def get_active_bonuses(
    crafted_equation: str,
    player_answer: str,
    numeric_result: float,
    level: int,
    mode: GameMode | None,
    bonuses: Iterable[BonusConfig],
) -> list[BonusConfig]:
    """Return the configured bonuses that apply, in configuration order."""
    if mode != GameMode.CRAFTER:
        return []

    applicable = []
    for bonus in bonuses:
        if bonus.mode != mode or (bonus.level is not None and bonus.level != level):
            continue
        check = bonus.check or BONUS_CHECKS.get(bonus.id)
        if check is None:
            logger.warning("bonus_check_missing", bonus_id=bonus.id)
            continue
        if check(crafted_equation, player_answer, numeric_result):
            applicable.append(bonus)
    return applicable


def damage_multiplier(bonuses: Iterable[BonusConfig]) -> float:
    multiplier = 1.0
    for bonus in bonuses:
        multiplier *= bonus.power_multiplier
    return multiplier
