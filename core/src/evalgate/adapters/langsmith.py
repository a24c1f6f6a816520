"""LangSmith dataset and experiment exports."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel

from ..eval_result import NormalizedEvalResult
from .base import EvalAdapter, compact, first_item, is_object, mean


class LangSmithExample(BaseModel):
    id: str | None = None
    inputs: dict[str, Any] | None = None
    outputs: dict[str, Any] | None = None
    reference_outputs: dict[str, Any] | None = None


class LangSmithFeedback(BaseModel):
    key: str
    score: float | None = None
    value: Union[bool, int, float, str, None] = None
    comment: str | None = None


class LangSmithRunResult(BaseModel):
    example_id: str | None = None
    run_id: str | None = None
    feedback: list[LangSmithFeedback] | None = None
    execution_time: float | None = None


class LangSmithRunMetadata(BaseModel):
    project_name: str | None = None
    run_name: str | None = None
    model: str | None = None
    commit: str | None = None


class LangSmithExport(BaseModel):
    name: str | None = None
    description: str | None = None
    created_at: str | None = None
    modified_at: str | None = None
    examples: list[LangSmithExample] | None = None
    results: list[LangSmithRunResult] | None = None
    aggregate_feedback: dict[str, float] | None = None
    run_metadata: LangSmithRunMetadata | None = None


class LangSmithAdapter(EvalAdapter):
    name = "langsmith"
    display_name = "LangSmith"
    schema = LangSmithExport

    def supports(self, data: Any) -> bool:
        if not is_object(data):
            return False
        if isinstance(data.get("examples"), list):
            return True
        first = first_item(data, "results")
        if first is not None and ("feedback" in first or "run_id" in first):
            return True
        return "aggregate_feedback" in data

    def normalize(self, payload: LangSmithExport) -> NormalizedEvalResult:
        metrics: dict[str, float | int] = dict(payload.aggregate_feedback or {})

        if payload.results:
            feedback_scores: dict[str, list[float]] = {}
            execution_times: list[float] = []
            for result in payload.results:
                for feedback in result.feedback or []:
                    if feedback.score is not None:
                        feedback_scores.setdefault(feedback.key, []).append(feedback.score)
                if result.execution_time is not None:
                    execution_times.append(result.execution_time)

            # Pre-aggregated feedback keeps precedence over per-run averages.
            for key, scores in feedback_scores.items():
                if key not in metrics:
                    metrics[f"avg_{key}"] = mean(scores)

            if execution_times:
                metrics["avg_execution_time"] = mean(execution_times)
                metrics["total_examples"] = len(payload.results)

        if payload.examples is not None:
            metrics["dataset_size"] = len(payload.examples)

        run_metadata = payload.run_metadata
        return NormalizedEvalResult(
            eval_name=payload.name or "langsmith",
            run_id=(run_metadata.run_name if run_metadata else None) or self.generate_run_id(),
            timestamp=payload.modified_at or payload.created_at,
            metrics=metrics,
            metadata=compact(
                {
                    "model": run_metadata.model if run_metadata else None,
                    "commit": run_metadata.commit if run_metadata else None,
                }
            ),
        )
