"""Brightness expression grammar.

Accepted forms, checked in this order:

    10%-    decrease by 10 percent
    +10%    increase by 10 percent
    10%     set to 10 percent
    +0.1    increase by 0.1
    0.1-    decrease by 0.1
    0.1     set to 0.1

The result is not clamped.
"""

import math
import re

_NUMBER = r"(\d+(?:\.\d*)?|\.\d+)"

_RULES = (
    (re.compile(rf"^{_NUMBER}%-$"), lambda current, n: current - n / 100),
    (re.compile(rf"^\+{_NUMBER}%$"), lambda current, n: current + n / 100),
    (re.compile(rf"^{_NUMBER}%$"), lambda current, n: n / 100),
    (re.compile(rf"^\+{_NUMBER}$"), lambda current, n: current + n),
    (re.compile(rf"^{_NUMBER}-$"), lambda current, n: current - n),
)

FORMAT_HELP = (
    "Expected one of: 0.5 (absolute), 50% (absolute percent), "
    "+0.1 / 0.1- (relative), +10% / 10%- (relative percent)"
)


class ExpressionError(ValueError):
    """Raised when a brightness expression cannot be parsed."""


def parse_expression(current: float, expression: str) -> float:
    """Resolve an expression against the current brightness.

    Raises:
        ExpressionError: if the expression is not in a supported form
    """
    text = expression.strip()

    for pattern, apply in _RULES:
        match = pattern.match(text)
        if match:
            return apply(current, float(match.group(1)))

    if any(c in text for c in "%-+"):
        raise ExpressionError(f"Invalid format: {expression!r}. {FORMAT_HELP}")

    try:
        value = float(text)
    except ValueError:
        raise ExpressionError(f"Invalid brightness value: {expression!r}. {FORMAT_HELP}") from None
    if not math.isfinite(value):
        raise ExpressionError(f"Invalid brightness value: {expression!r}. {FORMAT_HELP}")
    return value
