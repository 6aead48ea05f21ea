"""
Arithmetic Expression Parser and Evaluator.

Parses crafted equations into a small owned AST and evaluates them with
exact rational arithmetic.

Supports:
- Integers and decimals: 12, 0.5, 3.
- Binary operators: +, -, *, / (display glyphs × and ÷ are accepted)
- Unary minus: -3, -(2+1)
- Parenthesis grouping

AST node kinds:
- Number: a literal, value kept as a Fraction
- BinaryOp: op in {"+", "-", "*", "/"}
- Paren: an explicit parenthesized group (kept so structure checks can see it)
- Negate: unary minus

evaluate_equation() never raises: failures are classified into short,
player-facing messages. parse_equation() is advisory and returns None on
failure.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Iterator, Union
import math
import re

from ..core.exceptions import ArenaError
from ..core.logging import get_logger

logger = get_logger(__name__)


DISPLAY_TO_INTERNAL = {"×": "*", "÷": "/"}
INTERNAL_TO_DISPLAY = {"*": "×"}

MSG_INVALID_RESULT = "Invalid expression result."
MSG_UNDEFINED_SYMBOL = "Invalid character or symbol."
MSG_PARENTHESES = "Check your parentheses."
MSG_INCOMPLETE = "Incomplete equation."
MSG_MISSING_VALUE = "Missing number or value."
MSG_GENERIC = "Invalid expression."


# =============================================================================
# Errors
# =============================================================================

class ExpressionError(ArenaError):
    """Base class for parse/evaluation failures."""
    user_message = MSG_GENERIC

    def __init__(self, message: str, *, position: int | None = None):
        self.position = position
        super().__init__(message, details={"position": position} if position is not None else None)


class UndefinedSymbolError(ExpressionError):
    user_message = MSG_UNDEFINED_SYMBOL


class ParenthesisMismatchError(ExpressionError):
    user_message = MSG_PARENTHESES


class UnexpectedEndError(ExpressionError):
    user_message = MSG_INCOMPLETE


class ValueExpectedError(ExpressionError):
    user_message = MSG_MISSING_VALUE


class NonFiniteResultError(ExpressionError):
    user_message = MSG_INVALID_RESULT


# =============================================================================
# AST
# =============================================================================

@dataclass(frozen=True)
class Number:
    value: Fraction
    text: str

    def evaluate(self) -> Fraction:
        return self.value


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"

    def evaluate(self) -> Fraction:
        left = self.left.evaluate()
        right = self.right.evaluate()
        if self.op == "+":
            return left + right
        if self.op == "-":
            return left - right
        if self.op == "*":
            return left * right
        if right == 0:
            raise NonFiniteResultError("Division by zero")
        return left / right


@dataclass(frozen=True)
class Paren:
    inner: "Node"

    def evaluate(self) -> Fraction:
        return self.inner.evaluate()


@dataclass(frozen=True)
class Negate:
    operand: "Node"

    def evaluate(self) -> Fraction:
        return -self.operand.evaluate()


Node = Union[Number, BinaryOp, Paren, Negate]


def iter_nodes(node: Node) -> Iterator[Node]:
    """Depth-first pre-order traversal of a tree."""
    yield node
    if isinstance(node, BinaryOp):
        yield from iter_nodes(node.left)
        yield from iter_nodes(node.right)
    elif isinstance(node, Paren):
        yield from iter_nodes(node.inner)
    elif isinstance(node, Negate):
        yield from iter_nodes(node.operand)


def unwrap_parens(node: Node) -> Node:
    """Strip any number of enclosing Paren nodes."""
    while isinstance(node, Paren):
        node = node.inner
    return node


# =============================================================================
# Tokenizer / Parser
# =============================================================================

@dataclass
class Token:
    kind: str  # "number", "op", "lparen", "rparen"
    text: str
    position: int


_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def sanitize(expression: str) -> str:
    """Replace display operator glyphs with evaluator operators."""
    for display, internal in DISPLAY_TO_INTERNAL.items():
        expression = expression.replace(display, internal)
    return expression


def to_display(expression: str) -> str:
    """Replace evaluator operators with display glyphs."""
    for internal, display in INTERNAL_TO_DISPLAY.items():
        expression = expression.replace(internal, display)
    return expression


def tokenize(expression: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    while i < len(expression):
        char = expression[i]
        if char.isspace():
            i += 1
            continue
        match = _NUMBER_RE.match(expression, i)
        if match:
            tokens.append(Token("number", match.group(0), i))
            i = match.end()
            continue
        if char in "+-*/":
            tokens.append(Token("op", char, i))
        elif char == "(":
            tokens.append(Token("lparen", char, i))
        elif char == ")":
            tokens.append(Token("rparen", char, i))
        else:
            raise UndefinedSymbolError(f"Undefined symbol {char!r}", position=i)
        i += 1
    return tokens


class _Parser:
    """Recursive descent parser with standard precedence."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _at_op(self, ops: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == "op" and token.text in ops

    def parse(self) -> Node:
        if not self.tokens:
            raise UnexpectedEndError("Unexpected end of expression")
        node = self.parse_sum()
        token = self.peek()
        if token is not None:
            if token.kind == "rparen":
                raise ParenthesisMismatchError("Unmatched ')'", position=token.position)
            raise ExpressionError(f"Unexpected {token.text!r}", position=token.position)
        return node

    def parse_sum(self) -> Node:
        node = self.parse_product()
        while self._at_op("+-"):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_product())
        return node

    def parse_product(self) -> Node:
        node = self.parse_unary()
        while self._at_op("*/"):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_unary())
        return node

    def parse_unary(self) -> Node:
        token = self.peek()
        if token is not None and token.kind == "op" and token.text == "-":
            self.advance()
            return Negate(self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Node:
        token = self.peek()
        if token is None:
            raise UnexpectedEndError("Unexpected end of expression")
        if token.kind == "number":
            self.advance()
            text = token.text[:-1] if token.text.endswith(".") else token.text
            return Number(Fraction(text), token.text)
        if token.kind == "lparen":
            self.advance()
            inner = self.parse_sum()
            closing = self.peek()
            if closing is None or closing.kind != "rparen":
                raise ParenthesisMismatchError("Parenthesis mismatch", position=token.position)
            self.advance()
            return Paren(inner)
        raise ValueExpectedError(f"Value expected at {token.text!r}", position=token.position)


def parse(expression: str) -> Node:
    """Parse an expression (display glyphs allowed). Raises ExpressionError."""
    return _Parser(tokenize(sanitize(expression))).parse()


def evaluate_exact(expression: str) -> Fraction:
    """Parse and evaluate to an exact Fraction. Raises ExpressionError."""
    return parse(expression).evaluate()


def evaluate_expression(expression: str) -> float:
    """Parse and evaluate to a finite float. Raises ExpressionError."""
    value = float(evaluate_exact(expression))
    if not math.isfinite(value):
        raise NonFiniteResultError("Result is not finite")
    return value


def try_evaluate(expression: str) -> float | None:
    """Evaluate, returning None instead of raising."""
    try:
        return evaluate_expression(expression)
    except (ExpressionError, OverflowError):
        return None


def parse_equation(expression: str) -> Node | None:
    """Advisory parse used by structure checks; None if unparseable."""
    try:
        return parse(expression)
    except ExpressionError as e:
        logger.debug("parse_equation_failed", expression=expression, error=str(e))
        return None


# =============================================================================
# Formatting and step traces
# =============================================================================

def format_decimal(value: float | Fraction) -> str:
    """Fixed-precision (14 significant digits) display of a value."""
    if isinstance(value, Fraction) and value.denominator == 1:
        return str(value.numerator)
    return f"{float(value):.14g}"


def format_ratio(value: Fraction) -> str:
    """Simplified n/d display (Fraction is always in lowest terms)."""
    if value.denominator == 1:
        return str(value.numerator)
    return f"{value.numerator}/{value.denominator}"


def format_value(value: Fraction, level: int) -> str:
    """Final-value display; fractions are meaningful at crafter level 2."""
    if level == 2:
        return format_ratio(value)
    return format_decimal(value)


_FIRST_GROUP_RE = re.compile(r"\(([^()]+)\)")


@dataclass
class EvaluationResult:
    """Outcome of evaluating a crafted equation."""
    value: float | None
    error: str | None
    steps: list[str] = field(default_factory=list)
    exact: Fraction | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


def _collapse_repeats(steps: list[str]) -> list[str]:
    collapsed: list[str] = []
    for step in steps:
        if not collapsed or collapsed[-1] != step:
            collapsed.append(step)
    return collapsed


def _substitute_first_group(sanitized: str, level: int) -> str | None:
    """Level 1 emphasis: evaluate the first innermost parenthesized group."""
    match = _FIRST_GROUP_RE.search(sanitized)
    if not match:
        return None
    try:
        group_value = evaluate_exact(match.group(1))
    except ExpressionError as e:
        logger.debug("step_substitution_skipped", group=match.group(1), error=str(e))
        return None
    replacement = format_value(group_value, level)
    return sanitized[:match.start()] + replacement + sanitized[match.end():]


def evaluate_equation(expression: str, level: int) -> EvaluationResult:
    """
    Evaluate a crafted equation for the given crafter level.

    Returns an EvaluationResult whose steps run from the formatted input,
    through an optional level-specific intermediate form, to the final value.
    """
    sanitized = sanitize(expression)
    steps = [to_display(sanitized)]
    try:
        exact = parse(sanitized).evaluate()
        value = float(exact)
        if not math.isfinite(value):
            raise NonFiniteResultError("Result is not finite")
    except NonFiniteResultError:
        return EvaluationResult(value=None, error=MSG_INVALID_RESULT, steps=[])
    except OverflowError:
        return EvaluationResult(value=None, error=MSG_INVALID_RESULT, steps=[])
    except ExpressionError as e:
        logger.debug("evaluate_equation_failed", expression=expression, error=str(e))
        return EvaluationResult(value=None, error=e.user_message, steps=[])

    if level == 1:
        substituted = _substitute_first_group(sanitized, level)
        if substituted is not None:
            steps.append(to_display(substituted))

    steps.append(format_value(exact, level))
    return EvaluationResult(value=value, error=None, steps=_collapse_repeats(steps), exact=exact)
