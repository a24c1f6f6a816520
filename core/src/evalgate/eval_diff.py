"""Metric-level diff between two sets of eval results."""

from __future__ import annotations

from typing import Literal, Sequence

from pydantic import Field

from .eval_result import NormalizedEvalResult, WireModel
from .values import MetricValue, is_number, strict_equals

DiffDirection = Literal["improved", "regressed", "unchanged", "new"]

LOWER_IS_BETTER_PATTERNS = (
    "error",
    "rate",
    "latency",
    "time",
    "cost",
    "loss",
    "miss",
    "fail",
    "hallucination",
    "toxicity",
    "bias",
)

_REMOVED_EVAL = "present"


class MetricDiff(WireModel):
    metric: str
    previous: MetricValue | None = None
    current: MetricValue | None = None
    delta: float | None = None
    direction: DiffDirection


class EvalDiff(WireModel):
    eval_name: str
    metrics: list[MetricDiff]


class EvalDiffStats(WireModel):
    improved: int = 0
    regressed: int = 0
    unchanged: int = 0
    new: int = 0


class EvalDiffResult(WireModel):
    identical: bool
    diffs: list[EvalDiff] = Field(default_factory=list)
    summary: str
    stats: EvalDiffStats


def is_lower_better_metric(metric: str) -> bool:
    """Name heuristic: errors, rates, latencies and costs should go down."""
    lowered = metric.lower()
    return any(pattern in lowered for pattern in LOWER_IS_BETTER_PATTERNS)


def _direction(metric: str, delta: float) -> DiffDirection:
    if delta == 0:
        return "unchanged"
    if is_lower_better_metric(metric):
        return "improved" if delta < 0 else "regressed"
    return "improved" if delta > 0 else "regressed"


def diff_metrics(
    previous: dict[str, MetricValue], current: dict[str, MetricValue]
) -> list[MetricDiff]:
    diffs: list[MetricDiff] = []
    for metric in dict.fromkeys([*previous, *current]):
        before = previous.get(metric)
        after = current.get(metric)

        if before is None:
            diffs.append(MetricDiff(metric=metric, current=after, direction="new"))
            continue
        if after is None:
            diffs.append(MetricDiff(metric=metric, previous=before, direction="regressed"))
            continue
        if strict_equals(before, after):
            continue

        if is_number(before) and is_number(after):
            delta = after - before
            diffs.append(
                MetricDiff(
                    metric=metric,
                    previous=before,
                    current=after,
                    delta=delta,
                    direction=_direction(metric, delta),
                )
            )
        else:
            diffs.append(
                MetricDiff(metric=metric, previous=before, current=after, direction="regressed")
            )
    return diffs


def build_diff_summary(stats: EvalDiffStats) -> str:
    parts: list[str] = []
    if stats.regressed:
        parts.append(f"{stats.regressed} regressed")
    if stats.improved:
        parts.append(f"{stats.improved} improved")
    if stats.new:
        parts.append(f"{stats.new} new")
    if stats.unchanged:
        parts.append(f"{stats.unchanged} unchanged")
    return ", ".join(parts) if parts else "No changes detected"


def diff_eval_results(
    previous: Sequence[NormalizedEvalResult], current: Sequence[NormalizedEvalResult]
) -> EvalDiffResult:
    """Compare two runs; a suite missing from ``current`` is one regressed ``*`` entry."""
    previous_by_name = {result.eval_name: result for result in previous}
    current_by_name = {result.eval_name: result for result in current}

    diffs: list[EvalDiff] = []
    counts = {"improved": 0, "regressed": 0, "unchanged": 0, "new": 0}

    for eval_name, result in current_by_name.items():
        before = previous_by_name.get(eval_name)
        metric_diffs = diff_metrics(dict(before.metrics) if before else {}, dict(result.metrics))
        if metric_diffs:
            diffs.append(EvalDiff(eval_name=eval_name, metrics=metric_diffs))
            for metric_diff in metric_diffs:
                counts[metric_diff.direction] += 1

    for eval_name in previous_by_name:
        if eval_name not in current_by_name:
            diffs.append(
                EvalDiff(
                    eval_name=eval_name,
                    metrics=[
                        MetricDiff(metric="*", previous=_REMOVED_EVAL, direction="regressed")
                    ],
                )
            )
            counts["regressed"] += 1

    stats = EvalDiffStats(**counts)
    return EvalDiffResult(
        identical=not (stats.improved or stats.regressed or stats.new),
        diffs=diffs,
        summary=build_diff_summary(stats),
        stats=stats,
    )

