"""Promptfoo ``--output results.json`` exports."""

from __future__ import annotations

from typing import Any

from ..aggregator import percentile
from ..eval_result import NormalizedEvalResult, WireModel
from .base import EvalAdapter, compact, first_item, is_object, mean


class PromptfooPrompt(WireModel):
    raw: str | None = None
    label: str | None = None


class PromptfooResponse(WireModel):
    output: str | None = None


class PromptfooTestResult(WireModel):
    provider: str | None = None
    prompt: PromptfooPrompt | None = None
    response: PromptfooResponse | None = None
    success: bool
    score: float | None = None
    named_scores: dict[str, float] | None = None
    latency_ms: float | None = None
    cost: float | None = None


class PromptfooTokenUsage(WireModel):
    total: int | None = None
    prompt: int | None = None
    completion: int | None = None


class PromptfooStats(WireModel):
    successes: int
    failures: int
    token_usage: PromptfooTokenUsage | None = None


class PromptfooExport(WireModel):
    eval_id: str | None = None
    results: list[PromptfooTestResult]
    stats: PromptfooStats | None = None
    timestamp: str | None = None


class PromptfooAdapter(EvalAdapter):
    name = "promptfoo"
    display_name = "Promptfoo"
    schema = PromptfooExport

    def supports(self, data: Any) -> bool:
        if not is_object(data):
            return False
        first = first_item(data, "results")
        return first is not None and "success" in first

    def normalize(self, payload: PromptfooExport) -> NormalizedEvalResult:
        results = payload.results
        total = len(results)
        passed = sum(1 for result in results if result.success)
        failed = total - passed

        metrics: dict[str, float | int] = {
            "pass_rate": passed / total if total else 0,
            "fail_rate": failed / total if total else 0,
            "total_tests": total,
            "passed_tests": passed,
            "failed_tests": failed,
        }

        scores = [result.score for result in results if result.score is not None]
        if scores:
            metrics["avg_score"] = mean(scores)
            metrics["min_score"] = min(scores)
            metrics["max_score"] = max(scores)

        named: dict[str, list[float]] = {}
        for result in results:
            for score_name, value in (result.named_scores or {}).items():
                named.setdefault(score_name, []).append(value)
        for score_name, values in named.items():
            metrics[f"avg_{score_name}"] = mean(values)

        latencies = [result.latency_ms for result in results if result.latency_ms is not None]
        if latencies:
            metrics["avg_latency_ms"] = mean(latencies)
            metrics["p50_latency_ms"] = percentile(latencies, 50)
            metrics["p95_latency_ms"] = percentile(latencies, 95)
            metrics["p99_latency_ms"] = percentile(latencies, 99)

        costs = [result.cost for result in results if result.cost is not None]
        if costs:
            metrics["total_cost"] = sum(costs)
            metrics["avg_cost"] = metrics["total_cost"] / len(costs)

        usage = payload.stats.token_usage if payload.stats else None
        if usage is not None:
            if usage.total is not None:
                metrics["total_tokens"] = usage.total
            if usage.prompt is not None:
                metrics["prompt_tokens"] = usage.prompt
            if usage.completion is not None:
                metrics["completion_tokens"] = usage.completion

        return NormalizedEvalResult(
            eval_name="promptfoo",
            run_id=payload.eval_id or self.generate_run_id(),
            timestamp=payload.timestamp,
            metrics=metrics,
            metadata=compact({"model": results[0].provider if results else None}),
        )
