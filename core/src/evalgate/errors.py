"""Error taxonomy for contract, source and adapter failures.

Configuration errors mean the caller must change what they pass in (missing
source config, unknown adapter). Format errors mean the input itself is
malformed. Data-level gaps (missing evals, metrics or baselines) are never
raised; the engine reports them inside the returned Decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

DecisionStatus = Literal["PASS", "BLOCK", "REQUIRES_APPROVAL"]

EXIT_CODE_BY_STATUS: dict[str, int] = {
    "PASS": 0,
    "BLOCK": 1,
    "REQUIRES_APPROVAL": 2,
}
EXIT_CODE_ERROR = 3


def exit_code_for_status(status: str | None) -> int:
    return EXIT_CODE_BY_STATUS.get(str(status or ""), EXIT_CODE_ERROR)


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str
    code: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message, "code": self.code}


class EvalGateError(Exception):
    """Base class for every error raised by evalgate."""


class ConfigurationError(EvalGateError, ValueError):
    """The caller supplied an incomplete or inconsistent configuration."""


class FormatError(EvalGateError, ValueError):
    """Input data could not be parsed into the expected shape."""


class ContractValidationError(FormatError):
    """Contract failed schema validation; carries one issue per failure."""

    def __init__(self, message: str, issues: list[ValidationIssue]):
        super().__init__(message)
        self.message = message
        self.issues = list(issues)

    def format(self) -> str:
        lines = [self.message, ""]
        for issue in self.issues:
            location = f'at "{issue.path}"' if issue.path else ""
            lines.append(f"  • {issue.message} {location}".rstrip())
        return "\n".join(lines)


def issues_from_pydantic(errors: list[dict[str, Any]]) -> list[ValidationIssue]:
    """Convert ``ValidationError.errors()`` output into path/message/code issues."""
    return [
        ValidationIssue(
            path=".".join(str(part) for part in err.get("loc", ())),
            message=str(err.get("msg", "invalid value")),
            code=str(err.get("type", "invalid")),
        )
        for err in errors
    ]


def summarize_pydantic(errors: list[dict[str, Any]]) -> str:
    parts: list[str] = []
    for issue in issues_from_pydantic(errors):
        parts.append(f"{issue.path}: {issue.message}" if issue.path else issue.message)
    return ", ".join(parts)
