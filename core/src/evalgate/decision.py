"""Decision, violation and decision-record shapes produced by the engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .contract import ContractRule
from .errors import DecisionStatus
from .eval_result import WireModel
from .values import MetricValue


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Violation(WireModel):
    eval_name: str
    rule: ContractRule
    actual_value: MetricValue
    baseline_value: MetricValue | None = None
    delta: float | None = None
    explanation: str


class Decision(WireModel):
    """Outcome of one evaluation call.

    Legacy contracts attach ``violations`` to BLOCK/REQUIRES_APPROVAL. Policy
    contracts never do; their ``summary`` carries the matched reason instead.
    """

    status: DecisionStatus
    evaluated_at: str = Field(default_factory=utc_now_iso)
    contract_name: str
    contract_version: int
    summary: str
    violations: list[Violation] | None = None

    @model_validator(mode="after")
    def violations_match_status(self) -> "Decision":
        if self.status == "PASS" and self.violations:
            raise ValueError("PASS decisions carry no violations")
        if self.violations is not None and not self.violations:
            raise ValueError("violations must not be empty when present")
        return self

    def comparable(self) -> dict[str, Any]:
        """Wire form without ``evaluatedAt``, for determinism checks."""
        payload = self.to_wire()
        payload.pop("evaluatedAt", None)
        return payload


class DecisionInputs(BaseModel):
    eval_hash: str | None = None
    signals_hash: str | None = None
    policy_hash: str


class DecisionRecord(BaseModel):
    """Write-once audit artifact for one evaluation."""

    commit: str | None = None
    environment: str
    decision: DecisionStatus
    reason: str | None = None
    inputs: DecisionInputs | None = None
    evidence: list[str] | None = None
    timestamp: str = Field(default_factory=utc_now_iso)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
