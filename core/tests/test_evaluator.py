from __future__ import annotations

import pytest
from pydantic import ValidationError

from evalgate.contract import EvalContract
from evalgate.decision import Decision
from evalgate.errors import ConfigurationError
from evalgate.eval_result import BaselineData, NormalizedEvalResult
from evalgate.evaluator import (
    build_violation_summary,
    evaluate,
    evaluate_required_evals,
    map_violation_action,
)


def _contract(*rules: dict, action: str = "block", eval_name: str = "quality") -> EvalContract:
    return EvalContract.model_validate(
        {
            "version": 1,
            "name": "release-gate",
            "requiredEvals": [{"name": eval_name, "rules": list(rules)}],
            "onViolation": {"action": action},
        }
    )


def _result(metrics: dict, eval_name: str = "quality", run_id: str = "run-1") -> NormalizedEvalResult:
    return NormalizedEvalResult(eval_name=eval_name, run_id=run_id, metrics=metrics)


def _baseline(metrics: dict, eval_name: str = "quality") -> dict[str, BaselineData]:
    return {eval_name: BaselineData(type="previous", metrics=metrics)}


_ACCURACY_FLOOR = {"metric": "accuracy", "operator": ">=", "baseline": "fixed", "threshold": 0.85}


def test_fixed_threshold_boundary_passes() -> None:
    decision = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"accuracy": 0.85})])

    assert decision.status == "PASS"
    assert decision.violations is None
    assert decision.summary == "All 1 eval(s) passed contract requirements"
    assert decision.contract_name == "release-gate"
    assert decision.contract_version == 1


def test_fixed_threshold_just_below_blocks() -> None:
    decision = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"accuracy": 0.8499})])

    assert decision.status == "BLOCK"
    assert decision.summary == "Blocked: 1 violation(s) in 1 eval"


def test_fixed_threshold_violation_explains_itself() -> None:
    decision = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"accuracy": 0.78})])

    assert decision.violations is not None
    [violation] = decision.violations
    assert violation.eval_name == "quality"
    assert violation.rule.metric == "accuracy"
    assert violation.actual_value == 0.78
    assert violation.baseline_value == 0.85
    assert violation.delta is None
    assert violation.explanation == "accuracy = 0.78, expected >= 0.85"


def test_missing_eval_is_a_violation() -> None:
    decision = evaluate(
        contract=_contract(_ACCURACY_FLOOR),
        eval_results=[_result({"accuracy": 0.99}, eval_name="other")],
    )

    assert decision.status == "BLOCK"
    [violation] = decision.violations
    assert violation.rule.metric == "*"
    assert violation.actual_value == "missing"
    assert violation.explanation == 'Required eval "quality" was not found in results'


def test_missing_metric_is_a_violation() -> None:
    decision = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"latency": 120})])

    [violation] = decision.violations
    assert violation.actual_value == "missing"
    assert violation.explanation == 'Metric "accuracy" was not found in eval results'


def test_fixed_rule_without_threshold_is_a_violation() -> None:
    rule = {"metric": "accuracy", "operator": ">=", "baseline": "fixed"}

    decision = evaluate(contract=_contract(rule), eval_results=[_result({"accuracy": 0.99})])

    [violation] = decision.violations
    assert violation.explanation == 'Rule has "fixed" baseline but no threshold specified'


def test_every_failing_rule_is_reported() -> None:
    contract = _contract(
        _ACCURACY_FLOOR,
        {"metric": "latency", "operator": "<=", "baseline": "fixed", "threshold": 500},
        {"metric": "toxicity", "operator": "<", "baseline": "fixed", "threshold": 0.01},
        {"metric": "cost", "operator": "<", "baseline": "fixed", "threshold": 1},
    )

    decision = evaluate(
        contract=contract,
        eval_results=[_result({"accuracy": 0.5, "latency": 900, "toxicity": 0.2, "cost": 0.5})],
    )

    assert [violation.rule.metric for violation in decision.violations] == [
        "accuracy",
        "latency",
        "toxicity",
    ]
    assert decision.summary == "Blocked: 3 violation(s) in 1 eval"


def test_summary_counts_distinct_evals() -> None:
    contract = EvalContract.model_validate(
        {
            "version": 1,
            "name": "multi",
            "requiredEvals": [
                {"name": "a", "rules": [_ACCURACY_FLOOR]},
                {"name": "b", "rules": [_ACCURACY_FLOOR]},
            ],
            "onViolation": {"action": "require_approval"},
        }
    )

    decision = evaluate(
        contract=contract,
        eval_results=[_result({"accuracy": 0.1}, eval_name="a"), _result({"accuracy": 0.2}, eval_name="b")],
    )

    assert decision.status == "REQUIRES_APPROVAL"
    assert decision.summary == "Requires approval: 2 violation(s) in 2 evals"


def test_warn_action_requires_approval() -> None:
    decision = evaluate(
        contract=_contract(_ACCURACY_FLOOR, action="warn"),
        eval_results=[_result({"accuracy": 0.1})],
    )

    assert decision.status == "REQUIRES_APPROVAL"
    assert decision.summary == "Warning: 1 violation(s) in 1 eval"


def test_map_violation_action() -> None:
    assert map_violation_action("block") == "BLOCK"
    assert map_violation_action("require_approval") == "REQUIRES_APPROVAL"
    assert map_violation_action("warn") == "REQUIRES_APPROVAL"


def test_relative_rule_without_baseline_passes() -> None:
    rule = {"metric": "accuracy", "operator": ">=", "baseline": "previous", "maxDelta": 0.05}

    assert evaluate(contract=_contract(rule), eval_results=[_result({"accuracy": 0.1})]).status == "PASS"
    assert (
        evaluate(
            contract=_contract(rule),
            eval_results=[_result({"accuracy": 0.1})],
            baselines=_baseline({"latency": 100}),
        ).status
        == "PASS"
    )


def test_relative_rule_increase_beyond_max_delta_is_a_regression() -> None:
    rule = {"metric": "latency", "operator": "<=", "baseline": "previous", "maxDelta": 20}

    decision = evaluate(
        contract=_contract(rule),
        eval_results=[_result({"latency": 130})],
        baselines=_baseline({"latency": 100}),
    )

    [violation] = decision.violations
    assert violation.delta == 30
    assert violation.baseline_value == 100
    assert violation.explanation == "latency regressed by +30.0000 (max allowed: 20)"


def test_relative_rule_within_max_delta_still_applies_operator() -> None:
    rule = {"metric": "latency", "operator": "<=", "baseline": "previous", "maxDelta": 20}

    decision = evaluate(
        contract=_contract(rule),
        eval_results=[_result({"latency": 110})],
        baselines=_baseline({"latency": 100}),
    )

    [violation] = decision.violations
    assert violation.delta == 10
    assert violation.explanation == "latency = 110, expected <= 100"


def test_relative_rule_decrease_is_never_a_max_delta_regression() -> None:
    rule = {"metric": "accuracy", "operator": ">=", "baseline": "main", "maxDelta": 0.1}

    decision = evaluate(
        contract=_contract(rule),
        eval_results=[_result({"accuracy": 0.8})],
        baselines=_baseline({"accuracy": 0.85}),
    )

    [violation] = decision.violations
    assert violation.explanation == "accuracy = 0.8, expected >= 0.85"


def test_relative_rule_non_numeric_values() -> None:
    rule = {"metric": "status", "operator": "==", "baseline": "previous"}
    baselines = _baseline({"status": "ok"})

    passed = evaluate(contract=_contract(rule), eval_results=[_result({"status": "ok"})], baselines=baselines)
    failed = evaluate(contract=_contract(rule), eval_results=[_result({"status": "bad"})], baselines=baselines)

    assert passed.status == "PASS"
    [violation] = failed.violations
    assert violation.delta is None
    assert violation.explanation == "status = bad, baseline was ok"


def test_relational_operators_fail_on_non_numeric_values() -> None:
    rule = {"metric": "grade", "operator": ">", "baseline": "fixed", "threshold": 1}

    decision = evaluate(contract=_contract(rule), eval_results=[_result({"grade": "high"})])

    assert decision.status == "BLOCK"


def test_booleans_are_not_numbers() -> None:
    rule = {"metric": "passed", "operator": "==", "baseline": "fixed", "threshold": 1}

    decision = evaluate(contract=_contract(rule), eval_results=[_result({"passed": True})])

    [violation] = decision.violations
    assert violation.explanation == "passed = true, expected == 1"


def test_duplicate_results_last_one_wins() -> None:
    decision = evaluate(
        contract=_contract(_ACCURACY_FLOOR),
        eval_results=[_result({"accuracy": 0.1}, run_id="a"), _result({"accuracy": 0.9}, run_id="b")],
    )

    assert decision.status == "PASS"


def test_evaluation_is_deterministic() -> None:
    contract = _contract(_ACCURACY_FLOOR, {"metric": "latency", "operator": "<=", "baseline": "previous", "maxDelta": 5})
    results = [_result({"accuracy": 0.7, "latency": 120})]
    baselines = _baseline({"latency": 100})

    first = evaluate(contract=contract, eval_results=results, baselines=baselines)
    second = evaluate(contract=contract, eval_results=results, baselines=baselines)

    assert first.comparable() == second.comparable()
    assert "evaluatedAt" not in first.comparable()


def test_decision_wire_form_is_camel_case() -> None:
    decision = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"accuracy": 0.78})])

    wire = decision.to_wire()

    assert set(wire) == {"status", "evaluatedAt", "contractName", "contractVersion", "summary", "violations"}
    assert wire["violations"][0]["actualValue"] == 0.78
    assert wire["violations"][0]["rule"]["baseline"] == "fixed"
    assert wire["evaluatedAt"].endswith("Z")


def test_pass_decision_cannot_carry_violations() -> None:
    failing = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"accuracy": 0.1})])

    with pytest.raises(ValidationError, match="PASS decisions carry no violations"):
        Decision(
            status="PASS",
            contract_name="x",
            contract_version=1,
            summary="ok",
            violations=failing.violations,
        )


def test_required_evals_engine_needs_required_evals() -> None:
    contract = EvalContract.model_validate(
        {"version": 1, "name": "policy-only", "policy": {"rules": []}}
    )

    with pytest.raises(ConfigurationError, match="requiredEvals"):
        evaluate_required_evals(contract, [], {})


def test_build_violation_summary() -> None:
    decision = evaluate(contract=_contract(_ACCURACY_FLOOR), eval_results=[_result({"accuracy": 0.1})])

    assert build_violation_summary(decision.violations, "block") == "Blocked: 1 violation(s) in 1 eval"
