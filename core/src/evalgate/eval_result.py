"""Normalized eval results and baselines: the input side of the decision engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .values import MetricValue, snake_to_camel

BaselineType = Literal["previous", "main", "fixed"]


class WireModel(BaseModel):
    """Snake_case attributes in Python, camelCase names on the wire."""

    model_config = ConfigDict(alias_generator=snake_to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NormalizedEvalResult(WireModel):
    """One eval suite run reduced to a flat metric map."""

    model_config = ConfigDict(frozen=True)

    eval_name: str
    run_id: str
    timestamp: str | None = None
    metrics: dict[str, MetricValue]
    metadata: dict[str, Any] | None = None

    @field_validator("eval_name", "run_id")
    @classmethod
    def validate_required_text(cls, value: str, info: Any) -> str:
        if not value.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value


class BaselineSource(WireModel):
    run_id: str | None = None
    commit: str | None = None
    timestamp: str | None = None


class BaselineData(WireModel):
    """Comparison point for relative rules, keyed by eval name by the caller."""

    model_config = ConfigDict(frozen=True)

    type: BaselineType
    metrics: dict[str, MetricValue] = Field(default_factory=dict)
    source: BaselineSource | None = None


def baseline_from_result(
    result: NormalizedEvalResult, baseline_type: BaselineType = "previous"
) -> BaselineData:
    metadata = result.metadata or {}
    commit = metadata.get("commit")
    return BaselineData(
        type=baseline_type,
        metrics=dict(result.metrics),
        source=BaselineSource(
            run_id=result.run_id,
            commit=str(commit) if commit is not None else None,
            timestamp=result.timestamp,
        ),
    )


def baselines_by_eval_name(
    results: list[NormalizedEvalResult], baseline_type: BaselineType = "previous"
) -> dict[str, BaselineData]:
    """Later results with the same eval name replace earlier ones."""
    return {result.eval_name: baseline_from_result(result, baseline_type) for result in results}


def is_iso_timestamp(value: str) -> bool:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True
