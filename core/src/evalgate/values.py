"""Metric value helpers shared by the normalizer, engines and diffing."""

from __future__ import annotations

import json
import math
import re
from typing import Any, Union

MetricValue = Union[bool, int, float, str]

_SNAKE_SEGMENT = re.compile(r"_([a-z])")


def snake_to_camel(name: str) -> str:
    """Rewrite every ``_x`` (lowercase letter) as ``X``: ``max_delta`` -> ``maxDelta``."""
    return _SNAKE_SEGMENT.sub(lambda match: match.group(1).upper(), name)


def is_number(value: Any) -> bool:
    """True for int/float, never for bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(left: Any, right: Any) -> bool:
    """Equality that never treats ``True`` as ``1`` or ``"1"`` as ``1``."""
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if is_number(left) or is_number(right):
        return False
    return type(left) is type(right) and left == right


def format_number(value: float | int) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
    return str(value)


def stringify(value: Any) -> str:
    """Render a value the way it reads in explanations and signal comparisons.

    Booleans are lowercase, integral floats drop the trailing ``.0``, ``None``
    is ``null`` and containers are compact JSON.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def format_delta(delta: float) -> str:
    sign = "+" if delta > 0 else ""
    return f"{sign}{delta:.4f}"


def compare_values(actual: Any, operator: str, expected: Any) -> bool:
    """Numbers support all six operators; anything else only ``==``/``!=``."""
    if is_number(actual) and is_number(expected):
        if operator == "==":
            return actual == expected
        if operator == "!=":
            return actual != expected
        if operator == "<":
            return actual < expected
        if operator == "<=":
            return actual <= expected
        if operator == ">":
            return actual > expected
        if operator == ">=":
            return actual >= expected
        return False

    if operator == "==":
        return strict_equals(actual, expected)
    if operator == "!=":
        return not strict_equals(actual, expected)
    return False


def compute_delta(actual: Any, baseline: Any) -> float | None:
    if is_number(actual) and is_number(baseline):
        return actual - baseline
    return None
