"""CSV reading with typed cells, tuned for eval exports.

Quoted fields may contain the delimiter, doubled quotes and line breaks.
CRLF, LF and bare CR all end a record outside of quotes.
"""

from __future__ import annotations

import csv
import io
import json
import re
from typing import Any

from .errors import FormatError

Row = dict[str, Any]

_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")


def _read_records(content: str, delimiter: str, quote: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(content, newline=""), delimiter=delimiter, quotechar=quote)
    try:
        return list(reader)
    except csv.Error as exc:
        raise FormatError(f"Invalid CSV at line {reader.line_num}: {exc}") from exc


def _is_blank(record: list[str]) -> bool:
    return not record or (len(record) == 1 and not record[0].strip())


def parse_cell(raw: str) -> Any:
    """Type a raw cell: null, bool, number, embedded JSON, else the trimmed string."""
    value = raw.strip()
    lowered = value.lower()
    if not value or lowered == "null":
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _NUMBER.match(value):
        if _INTEGER.match(value):
            return int(value)
        return float(value)
    if (value.startswith("{") and value.endswith("}")) or (
        value.startswith("[") and value.endswith("]")
    ):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass
    return value


def parse_csv(
    content: str,
    *,
    delimiter: str = ",",
    quote: str = '"',
    has_header: bool = True,
) -> tuple[list[str], list[Row]]:
    """Parse CSV text into ``(headers, rows)``.

    Without a header row the columns are named ``col_0``, ``col_1``, ... after
    the width of the first record. Blank records are skipped and short records
    are padded with nulls.
    """
    records = _read_records(content, delimiter, quote)
    if not records:
        return [], []

    if has_header:
        headers = records[0]
        data_records = records[1:]
    else:
        headers = [f"col_{index}" for index in range(len(records[0]))]
        data_records = records

    rows: list[Row] = []
    for record in data_records:
        if _is_blank(record):
            continue
        rows.append(
            {
                header: parse_cell(record[index] if index < len(record) else "")
                for index, header in enumerate(headers)
            }
        )
    return headers, rows


def is_csv(content: str) -> bool:
    """Comma-bearing first line that does not open a JSON document."""
    first_line = re.split(r"\r?\n", content, maxsplit=1)[0]
    stripped = first_line.strip()
    return "," in first_line and not stripped.startswith("{") and not stripped.startswith("[")
