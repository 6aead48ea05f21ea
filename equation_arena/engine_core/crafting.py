"""
Crafting Validator - Gates for player-authored equations.

Two independent gates must both pass before an equation is accepted:

1. Character gate (per keystroke): the character must be in the level's
   allow-list, numbers are capped at two consecutive digits, and the
   character must make sense after the previous one (no operator after an
   operator, no "(" right after a digit, ...).
2. Structural gate (per level): a predicate over the whole equation.

check_submission() runs the finalize-time checks in order: not empty and
not operator-terminal, contains an operator, passes the structural gate,
not already used this level.
"""

from __future__ import annotations
from dataclasses import dataclass
import re

from .expression import parse_equation
from .state import DUPLICATE_EQUATION_MESSAGE
from ..config_schema.models import CrafterLevelConfig


OPERATORS = frozenset({"+", "-", "×", "÷", "/", "*"})
MAX_DIGITS_PER_NUMBER = 2

MSG_EMPTY_OR_TRAILING = "Equation cannot be empty or end with an operator."
MSG_NO_OPERATOR = "Equation must contain at least one operator."
MSG_LEVEL_REQUIREMENT = "Equation does not meet level requirements."

_TRAILING_DIGITS_RE = re.compile(r"(\d+)$")
_FRACTION_RE = re.compile(r"(\d+)/(\d+)")
_FRACTION_SUM_RE = re.compile(r"^-?\d+(?:/\d+)?(?:[+-]\d+(?:/\d+)?)+$")
_EMBEDDED_DECIMAL_RE = re.compile(r"\d\.\d")


def is_operator(char: str) -> bool:
    return char in OPERATORS


# =============================================================================
# Character gate
# =============================================================================

def _current_number_segment(equation: str) -> str:
    """Text after the last operator or parenthesis."""
    cut = max(
        [equation.rfind(op) for op in OPERATORS] + [equation.rfind("("), equation.rfind(")")]
    )
    return equation[cut + 1:]


def can_append(equation: str, char: str, allowed_chars: tuple[str, ...] | None) -> bool:
    """
    Whether char may be appended to the in-progress equation.

    ``allowed_chars=None`` means no allow-list restriction; an empty tuple
    rejects everything.
    """
    if len(char) != 1:
        return False
    if allowed_chars is not None and char not in allowed_chars:
        return False

    last = equation[-1:] if equation else ""
    last_is_operator = is_operator(last)

    if char.isdigit():
        match = _TRAILING_DIGITS_RE.search(equation)
        if match and len(match.group(1)) >= MAX_DIGITS_PER_NUMBER:
            return False
        return last != ")"

    if is_operator(char):
        if equation == "":
            return char == "-"
        return not (last_is_operator or last == "(" or last == ".")

    if char == "(":
        return not (last.isdigit() or last in {")", "(", "."})

    if char == ")":
        if equation == "" or equation.count("(") <= equation.count(")"):
            return False
        return not (last_is_operator or last in {"(", "."})

    if char == ".":
        if equation == "" or last_is_operator or last in {".", "(", ")"}:
            return False
        return "." not in _current_number_segment(equation)

    return False


# =============================================================================
# Structural gate
# =============================================================================

def is_syntactically_sound(equation: str) -> bool:
    """
    Balanced, non-empty parentheses; no adjacent operators; no leading
    operator except a minus; no trailing operator; parseable.
    """
    trimmed = equation.strip()
    if not trimmed:
        return False

    depth = 0
    previous = ""
    for index, char in enumerate(trimmed):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0 or previous == "(":
                return False
            if is_operator(previous):
                return False
        elif is_operator(char):
            if index == 0:
                if char != "-":
                    return False
            elif is_operator(previous) or previous == "(":
                return False
        previous = char

    if depth != 0 or is_operator(trimmed[-1]):
        return False
    return parse_equation(trimmed) is not None


def validate_level_1(equation: str) -> bool:
    """Order of operations: sound and uses at least one parenthesized group."""
    return is_syntactically_sound(equation) and "(" in equation


def validate_level_2(equation: str) -> bool:
    """Fractions: two or more fraction terms with differing denominators, joined by + or -."""
    trimmed = equation.strip()
    if not _FRACTION_SUM_RE.match(trimmed):
        return False
    fractions = _FRACTION_RE.findall(trimmed)
    if len(fractions) < 2:
        return False
    denominators = {int(den) for _, den in fractions}
    if 0 in denominators:
        return False
    return len(denominators) >= 2


def validate_level_3(equation: str) -> bool:
    """Decimals: sound and has a decimal point between digits."""
    return is_syntactically_sound(equation) and bool(_EMBEDDED_DECIMAL_RE.search(equation))


CRAFTER_VALIDATORS = {
    1: validate_level_1,
    2: validate_level_2,
    3: validate_level_3,
}


def is_valid_for_level(equation: str, level_config: CrafterLevelConfig | None) -> bool:
    if level_config is None:
        return False
    return level_config.validate_structure(equation)


# =============================================================================
# Submission
# =============================================================================

@dataclass(frozen=True)
class SubmissionCheck:
    ok: bool
    error: str | None = None
    is_duplicate: bool = False
    equation: str = ""


def check_submission(
    equation: str,
    level_config: CrafterLevelConfig | None,
    used_equations: frozenset[str],
) -> SubmissionCheck:
    """Finalize-time checks, in order; the first failure wins."""
    trimmed = equation.strip()
    if trimmed == "" or is_operator(trimmed[-1]):
        return SubmissionCheck(ok=False, error=MSG_EMPTY_OR_TRAILING, equation=trimmed)

    if not any(is_operator(c) for c in trimmed[1:]):
        return SubmissionCheck(ok=False, error=MSG_NO_OPERATOR, equation=trimmed)

    if not is_valid_for_level(trimmed, level_config):
        if level_config is not None and level_config.description:
            message = f"Equation does not meet level requirement: {level_config.description}"
        else:
            message = MSG_LEVEL_REQUIREMENT
        return SubmissionCheck(ok=False, error=message, equation=trimmed)

    if trimmed in used_equations:
        return SubmissionCheck(
            ok=False, error=DUPLICATE_EQUATION_MESSAGE, is_duplicate=True, equation=trimmed
        )

    return SubmissionCheck(ok=True, equation=trimmed)
