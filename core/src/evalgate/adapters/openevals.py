"""OpenEvals result files."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ..eval_result import NormalizedEvalResult
from .base import EvalAdapter, compact, first_item, is_object, mean


class OpenEvalsExample(BaseModel):
    input: Any = None
    output: Any = None
    expected: Any = None
    scores: dict[str, float] | None = None
    passed: bool | None = None
    metadata: dict[str, Any] | None = None


class OpenEvalsSummary(BaseModel):
    total: int | float | None = None
    passed: int | float | None = None
    failed: int | float | None = None
    accuracy: float | None = None


class OpenEvalsExport(BaseModel):
    eval_name: str | None = None
    eval_id: str | None = None
    timestamp: str | None = None
    model: str | None = None
    dataset: str | None = None
    metrics: dict[str, float] | None = None
    results: list[OpenEvalsExample] | None = None
    summary: OpenEvalsSummary | None = None
    metadata: dict[str, Any] | None = None


class OpenEvalsAdapter(EvalAdapter):
    name = "openevals"
    display_name = "OpenEvals"
    schema = OpenEvalsExport

    def supports(self, data: Any) -> bool:
        if not is_object(data):
            return False
        # A camelCase evalName marks the generic format.
        if isinstance(data.get("evalName"), str):
            return False

        first = first_item(data, "results")
        if first is not None and ("scores" in first or "passed" in first):
            return True

        summary = data.get("summary")
        if is_object(summary) and ("passed" in summary or "accuracy" in summary):
            return True

        return is_object(data.get("metrics")) and any(
            key in data for key in ("eval_name", "eval_id", "dataset")
        )

    def normalize(self, payload: OpenEvalsExport) -> NormalizedEvalResult:
        metrics: dict[str, float | int] = dict(payload.metrics or {})

        summary = payload.summary
        if summary is not None:
            if summary.accuracy is not None:
                metrics["accuracy"] = summary.accuracy
            if summary.total is not None:
                metrics["total_examples"] = summary.total
            if summary.passed is not None:
                metrics["passed_examples"] = summary.passed
            if summary.failed is not None:
                metrics["failed_examples"] = summary.failed
            if summary.total and summary.passed and summary.total > 0:
                metrics["pass_rate"] = summary.passed / summary.total
                metrics["fail_rate"] = 1 - metrics["pass_rate"]

        if payload.results:
            scores_by_key: dict[str, list[float]] = {}
            passed = failed = 0
            for example in payload.results:
                if example.passed is True:
                    passed += 1
                elif example.passed is False:
                    failed += 1
                for key, value in (example.scores or {}).items():
                    scores_by_key.setdefault(key, []).append(value)

            for key, values in scores_by_key.items():
                if key in metrics or f"avg_{key}" in metrics:
                    continue
                metrics[f"avg_{key}"] = mean(values)
                metrics[f"min_{key}"] = min(values)
                metrics[f"max_{key}"] = max(values)

            if "pass_rate" not in metrics and (passed or failed):
                total = passed + failed
                metrics["pass_rate"] = passed / total
                metrics["fail_rate"] = failed / total
                metrics["total_examples"] = total
                metrics["passed_examples"] = passed
                metrics["failed_examples"] = failed

        return NormalizedEvalResult(
            eval_name=payload.eval_name or payload.dataset or "openevals",
            run_id=payload.eval_id or self.generate_run_id(),
            timestamp=payload.timestamp,
            metrics=metrics,
            metadata=compact({"model": payload.model}),
        )
