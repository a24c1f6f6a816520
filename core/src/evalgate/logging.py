"""Structured logging for evalgate.

Controlled via EVALGATE_LOG_FORMAT env var: "text" (default) or "json".
Log output always goes to stderr so stdout stays reserved for reports.

Modules attach context through ``extra={"evalgate_<key>": value}``. Both
formatters collect those fields with the prefix stripped: JSON nests them
under ``context``, text appends them as ``[key=value ...]``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
CONTEXT_PREFIX = "evalgate_"


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key[len(CONTEXT_PREFIX):]: value
        for key, value in record.__dict__.items()
        if key.startswith(CONTEXT_PREFIX)
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, newline, rest = line.partition("\n")
        return f"{head} [{pairs}]{newline}{rest}"


def resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name not in LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(LEVELS)}")
    return logging.getLevelName(name)


def build_handler(log_format: str, level: int | str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolve_level(level))
    handler.setFormatter(JSONFormatter() if log_format == "json" else ContextTextFormatter())
    return handler


def setup_logging(log_format: str, level: int | str = logging.WARNING) -> None:
    """Route the root logger to a single stderr handler in the chosen format."""
    root = logging.getLogger()
    root.setLevel(resolve_level(level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.addHandler(build_handler(log_format, level))
