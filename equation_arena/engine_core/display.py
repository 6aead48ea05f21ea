"""
Display segmentation for equations.

Splits an equation string (in progress or final, e.g. "1/2+_" or
"1/2+1/3 = 5/6") into typed segments a presentation layer can render.
Fractions are only meaningful at crafter level 2; elsewhere "n/d" is
number, operator, number.
"""

from __future__ import annotations
from dataclasses import dataclass
import re


_SEGMENT_RE = re.compile(r"(\d+/\d+)|(\d+\.?\d*|\.\d+)|([+\-*×/÷=()])|(_)")


@dataclass(frozen=True)
class DisplaySegment:
    kind: str  # number, fraction, operator, paren_open, paren_close, placeholder, text
    value: str = ""
    numerator: str | None = None
    denominator: str | None = None


def segment_equation(equation: str, level: int) -> list[DisplaySegment]:
    """Segment an equation for display."""
    segments: list[DisplaySegment] = []
    last_index = 0

    for match in _SEGMENT_RE.finditer(equation):
        if match.start() > last_index:
            segments.append(DisplaySegment("text", equation[last_index:match.start()].strip()))

        fraction, number, symbol, placeholder = match.groups()
        if fraction:
            num, den = fraction.split("/")
            if level == 2:
                segments.append(DisplaySegment("fraction", fraction, numerator=num, denominator=den))
            else:
                segments.append(DisplaySegment("number", num))
                segments.append(DisplaySegment("operator", "/"))
                segments.append(DisplaySegment("number", den))
        elif number:
            segments.append(DisplaySegment("number", number))
        elif symbol:
            if symbol == "(":
                segments.append(DisplaySegment("paren_open", symbol))
            elif symbol == ")":
                segments.append(DisplaySegment("paren_close", symbol))
            else:
                segments.append(DisplaySegment("operator", symbol))
        elif placeholder:
            segments.append(DisplaySegment("placeholder", "_"))
        last_index = match.end()

    if last_index < len(equation):
        segments.append(DisplaySegment("text", equation[last_index:].strip()))

    segments = [s for s in segments if not (s.kind == "text" and s.value == "")]
    if not segments and equation.strip():
        return [DisplaySegment("text", equation)]
    return segments
