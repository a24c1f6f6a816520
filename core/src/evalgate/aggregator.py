"""Column aggregation for source-configured metrics."""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

from .csv_parser import Row
from .source_config import AggregationMethod, RowFilter
from .values import is_number, strict_equals

PASSING_STRINGS = frozenset({"success", "pass", "passed", "true", "1", "yes", "ok"})

_PERCENTILES = {"p50": 50, "p90": 90, "p95": 95, "p99": 99}


def to_number(value: Any) -> float | int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return number
    return None


def is_pass(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value > 0
    if isinstance(value, str):
        return value.strip().lower() in PASSING_STRINGS
    return False


def percentile(values: Sequence[float | int], p: int) -> float | int:
    """Nearest-rank percentile; 0 for an empty sequence."""
    if not values:
        return 0
    ordered = sorted(values)
    index = math.ceil(p / 100 * len(ordered)) - 1
    return ordered[max(0, index)]


def pass_rate(values: Iterable[Any]) -> float:
    present = [value for value in values if value is not None and value != ""]
    if not present:
        return 0
    return sum(1 for value in present if is_pass(value)) / len(present)


def aggregate(values: Sequence[Any], method: AggregationMethod) -> float | int:
    """Reduce raw column values to one number.

    Non-numeric values are dropped from numeric methods. ``count`` counts every
    non-null raw value; ``pass_rate``/``fail_rate`` judge every non-empty one.
    """
    numbers = [number for number in map(to_number, values) if number is not None]

    if method == "avg":
        return sum(numbers) / len(numbers) if numbers else 0
    if method == "sum":
        return sum(numbers)
    if method == "min":
        return min(numbers) if numbers else 0
    if method == "max":
        return max(numbers) if numbers else 0
    if method == "count":
        return sum(1 for value in values if value is not None)
    if method in _PERCENTILES:
        return percentile(numbers, _PERCENTILES[method])
    if method == "pass_rate":
        return pass_rate(values)
    if method == "fail_rate":
        return 1 - pass_rate(values)
    if method == "first":
        return numbers[0] if numbers else 0
    if method == "last":
        return numbers[-1] if numbers else 0
    raise ValueError(f"Unknown aggregation method: {method}")


def _row_matches(row: Row, row_filter: RowFilter) -> bool:
    cell = row.get(row_filter.column)
    if row_filter.equals is not None:
        return strict_equals(cell, row_filter.equals)
    if row_filter.not_equals is not None:
        return not strict_equals(cell, row_filter.not_equals)
    return True


def extract_column_values(
    rows: Sequence[Row], column: str, row_filter: RowFilter | None = None
) -> list[Any]:
    """Values of ``column`` from the rows that pass ``row_filter``; absent cells are ``None``."""
    selected = rows if row_filter is None else [row for row in rows if _row_matches(row, row_filter)]
    return [row.get(column) for row in selected]
