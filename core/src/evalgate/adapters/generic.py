"""Native evalgate format: already normalized, only validated."""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, field_validator

from ..eval_result import NormalizedEvalResult, WireModel, is_iso_timestamp
from ..values import MetricValue
from .base import EvalAdapter, is_object


class GenericMetadata(WireModel):
    model_config = ConfigDict(extra="allow")

    model: str | None = None
    commit: str | None = None
    branch: str | None = None


class GenericEval(WireModel):
    eval_name: str
    run_id: str
    timestamp: str | None = None
    metrics: dict[str, MetricValue]
    metadata: GenericMetadata | None = None

    @field_validator("eval_name", "run_id")
    @classmethod
    def validate_required_text(cls, value: str, info: Any) -> str:
        if not value:
            raise ValueError(f"{info.field_name} must not be empty")
        return value

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, value: str | None) -> str | None:
        if value is not None and not is_iso_timestamp(value):
            raise ValueError("timestamp must be an ISO-8601 datetime")
        return value


class GenericAdapter(EvalAdapter):
    name = "generic"
    display_name = "generic eval"
    schema = GenericEval

    def supports(self, data: Any) -> bool:
        return (
            is_object(data)
            and isinstance(data.get("evalName"), str)
            and is_object(data.get("metrics"))
        )

    def normalize(self, payload: GenericEval) -> NormalizedEvalResult:
        return NormalizedEvalResult(
            eval_name=payload.eval_name,
            run_id=payload.run_id,
            timestamp=payload.timestamp,
            metrics=payload.metrics,
            metadata=payload.metadata.model_dump(exclude_none=True) if payload.metadata else None,
        )
