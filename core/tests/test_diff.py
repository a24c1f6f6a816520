from __future__ import annotations

from evalgate.contract import EvalContract
from evalgate.contract_diff import diff_contracts
from evalgate.eval_diff import diff_eval_results, diff_metrics, is_lower_better_metric
from evalgate.eval_result import NormalizedEvalResult
from evalgate.formatter import format_diff_result


def _result(eval_name: str, metrics: dict) -> NormalizedEvalResult:
    return NormalizedEvalResult(eval_name=eval_name, run_id="run", metrics=metrics)


def _contract(**overrides) -> EvalContract:
    data = {
        "version": 1,
        "name": "gate",
        "requiredEvals": [
            {
                "name": "quality",
                "rules": [
                    {"metric": "accuracy", "operator": ">=", "baseline": "fixed", "threshold": 0.85},
                    {"metric": "latency", "operator": "<=", "baseline": "previous", "maxDelta": 50},
                ],
            }
        ],
        "onViolation": {"action": "block"},
    }
    data.update(overrides)
    return EvalContract.model_validate(data)


def test_lower_is_better_heuristic() -> None:
    assert is_lower_better_metric("error_rate")
    assert is_lower_better_metric("P95_Latency")
    assert is_lower_better_metric("total_cost")
    assert is_lower_better_metric("hallucination_score")
    assert not is_lower_better_metric("accuracy")
    assert not is_lower_better_metric("f1")


def test_diff_metrics_directions() -> None:
    diffs = diff_metrics(
        {"accuracy": 0.8, "error_rate": 0.1, "latency": 200, "label": "a", "same": 1, "gone": 3},
        {"accuracy": 0.9, "error_rate": 0.2, "latency": 150, "label": "b", "same": 1, "fresh": 5},
    )
    by_metric = {diff.metric: diff for diff in diffs}

    assert by_metric["accuracy"].direction == "improved"
    assert by_metric["error_rate"].direction == "regressed"
    assert by_metric["latency"].direction == "improved"
    assert by_metric["latency"].delta == -50
    assert by_metric["label"].direction == "regressed"
    assert by_metric["label"].delta is None
    assert by_metric["gone"].direction == "regressed"
    assert by_metric["gone"].current is None
    assert by_metric["fresh"].direction == "new"
    assert "same" not in by_metric


def test_diff_eval_results_counts_and_summary() -> None:
    previous = [_result("quality", {"accuracy": 0.8, "error_rate": 0.1}), _result("legacy", {"x": 1})]
    current = [_result("quality", {"accuracy": 0.9, "error_rate": 0.2}), _result("safety", {"toxicity": 0.01})]

    result = diff_eval_results(previous, current)

    assert not result.identical
    assert result.stats.improved == 1
    assert result.stats.regressed == 2
    assert result.stats.new == 1
    assert result.summary == "2 regressed, 1 improved, 1 new"
    removed = [diff for diff in result.diffs if diff.eval_name == "legacy"][0]
    assert removed.metrics[0].metric == "*"
    assert removed.metrics[0].previous == "present"


def test_identical_results() -> None:
    results = [_result("quality", {"accuracy": 0.9, "passed": True})]

    result = diff_eval_results(results, results)

    assert result.identical
    assert result.diffs == []
    assert result.summary == "No changes detected"


def test_bool_and_number_are_not_equal() -> None:
    diffs = diff_metrics({"passed": 1}, {"passed": True})

    assert [diff.direction for diff in diffs] == ["regressed"]


def test_format_diff_result_without_colors() -> None:
    result = diff_eval_results(
        [_result("quality", {"accuracy": 0.8})],
        [_result("quality", {"accuracy": 0.9, "f1": 0.7})],
    )

    output = format_diff_result(result, colors=False)

    assert "Eval Results Diff" in output
    assert "1 improved, 1 new" in output
    assert "  ↑ accuracy: 0.8 → 0.9 (+0.1000)" in output
    assert "  + f1: N/A → 0.7" in output


def test_diff_wire_form() -> None:
    result = diff_eval_results([_result("q", {"a": 1})], [_result("q", {"a": 2})])

    wire = result.to_wire()

    assert wire["diffs"][0]["evalName"] == "q"
    assert wire["diffs"][0]["metrics"][0] == {
        "metric": "a",
        "previous": 1,
        "current": 2,
        "delta": 1.0,
        "direction": "improved",
    }


# ---------------------------------------------------------------------------
# Contract diff
# ---------------------------------------------------------------------------


def test_identical_contracts() -> None:
    result = diff_contracts(_contract(), _contract())

    assert result.identical
    assert result.summary == "No changes detected"


def test_rule_changes_are_reported_per_field() -> None:
    current = _contract(
        requiredEvals=[
            {
                "name": "quality",
                "rules": [
                    {"metric": "accuracy", "operator": ">=", "baseline": "fixed", "threshold": 0.9},
                    {"metric": "cost", "operator": "<=", "baseline": "fixed", "threshold": 1},
                ],
            }
        ]
    )

    result = diff_contracts(_contract(), current)

    fields = [diff.field for diff in result.diffs]
    assert fields == [
        "requiredEvals.quality.rules.cost",
        "requiredEvals.quality.rules.latency",
        "requiredEvals.quality.rules.accuracy.threshold",
    ]
    assert [diff.kind for diff in result.diffs] == ["added", "removed", "changed"]
    assert result.summary.splitlines() == [
        "3 change(s) detected:",
        "  + Added: requiredEvals.quality.rules.cost",
        "  - Removed: requiredEvals.quality.rules.latency",
        "  ~ Changed: requiredEvals.quality.rules.accuracy.threshold (0.85 → 0.9)",
    ]


def test_top_level_and_eval_changes() -> None:
    current = _contract(
        name="gate-v2",
        description="Stricter gate",
        onViolation={"action": "require_approval"},
        requiredEvals=[
            {
                "name": "safety",
                "rules": [{"metric": "toxicity", "operator": "<", "baseline": "fixed", "threshold": 0.01}],
            }
        ],
    )

    result = diff_contracts(_contract(), current)

    assert [diff.field for diff in result.diffs] == [
        "name",
        "description",
        "onViolation.action",
        "requiredEvals.safety",
        "requiredEvals.quality",
    ]
    assert "  ~ Changed: name (gate → gate-v2)" in result.summary
    assert "  + Added: description" in result.summary


def test_max_delta_field_uses_wire_name() -> None:
    current = _contract(
        requiredEvals=[
            {
                "name": "quality",
                "rules": [
                    {"metric": "accuracy", "operator": ">=", "baseline": "fixed", "threshold": 0.85},
                    {"metric": "latency", "operator": "<=", "baseline": "previous", "maxDelta": 25},
                ],
            }
        ]
    )

    [diff] = diff_contracts(_contract(), current).diffs

    assert diff.field == "requiredEvals.quality.rules.latency.maxDelta"
    assert (diff.previous, diff.current) == (50, 25)


def test_policy_changes() -> None:
    with_policy = _contract(policy={"environments": {"production": {"default": "block"}}})
    changed_policy = _contract(policy={"rules": [], "environments": {"staging": {"default": "pass"}}})

    added = diff_contracts(_contract(), with_policy)
    changed = diff_contracts(with_policy, changed_policy)
    removed = diff_contracts(with_policy, _contract())

    assert [(diff.field, diff.kind) for diff in added.diffs] == [("policy", "added")]
    assert [(diff.field, diff.kind) for diff in removed.diffs] == [("policy", "removed")]
    [policy_diff] = changed.diffs
    assert policy_diff.previous == "0 global rule(s), environments: production"
    assert policy_diff.current == "0 global rule(s), environments: staging"
