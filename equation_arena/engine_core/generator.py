"""
Solver Equation Generator.

Produces a random arithmetic problem for a solver level. Level 1..4 map to
addition, subtraction, multiplication and division; any other level falls
back to addition.

Operand ranges keep every answer a non-negative integer:
- addition / multiplication: both operands in [1, 9]
- subtraction: minuend in [1, 18], subtrahend in [1, minuend]
- division: quotient and divisor in [1, 9], dividend = quotient * divisor

Equations use display glyphs (× and ÷) and end with " = ?".
"""

from __future__ import annotations
from dataclasses import dataclass
import random

from .state import OperationType
from ..core.logging import get_logger

logger = get_logger(__name__)


LEVEL_OPERATIONS = {
    1: OperationType.ADDITION,
    2: OperationType.SUBTRACTION,
    3: OperationType.MULTIPLICATION,
    4: OperationType.DIVISION,
}

OPERATION_GLYPHS = {
    OperationType.ADDITION: "+",
    OperationType.SUBTRACTION: "-",
    OperationType.MULTIPLICATION: "×",
    OperationType.DIVISION: "÷",
}


@dataclass(frozen=True)
class SolverEquation:
    equation: str
    expected_answer: int
    operation_type: OperationType


def operation_for_level(level: int) -> OperationType:
    operation = LEVEL_OPERATIONS.get(level)
    if operation is None:
        logger.warning("solver_level_unmapped", level=level, fallback="addition")
        return OperationType.ADDITION
    return operation


def generate_solver_equation(level: int, rng: random.Random | None = None) -> SolverEquation:
    """Generate a solver problem for the level."""
    rng = rng or random.Random()
    operation = operation_for_level(level)

    if operation == OperationType.SUBTRACTION:
        left = rng.randint(1, 18)
        right = rng.randint(1, left)
        answer = left - right
    elif operation == OperationType.MULTIPLICATION:
        left = rng.randint(1, 9)
        right = rng.randint(1, 9)
        answer = left * right
    elif operation == OperationType.DIVISION:
        answer = rng.randint(1, 9)
        right = rng.randint(1, 9)
        left = answer * right
    else:
        left = rng.randint(1, 9)
        right = rng.randint(1, 9)
        answer = left + right

    glyph = OPERATION_GLYPHS[operation]
    return SolverEquation(
        equation=f"{left} {glyph} {right} = ?",
        expected_answer=answer,
        operation_type=operation,
    )
