"""Decision engine entry point and legacy (required-eval) rule evaluation.

Evaluation is a pure, single-pass function of its inputs: the same contract,
results, baselines and signals always yield the same Decision apart from
``evaluatedAt``. Every rule of every required eval is checked; violations are
collected, never short-circuited.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .contract import ContractRule, EvalContract, RequiredEval, ViolationAction
from .decision import Decision, Violation
from .errors import ConfigurationError, DecisionStatus
from .eval_result import BaselineData, NormalizedEvalResult
from .policy_evaluator import evaluate_policy
from .signals import Signal
from .values import MetricValue, compare_values, compute_delta, format_delta, stringify

logger = logging.getLogger(__name__)

_MISSING = "missing"


def evaluate_rule(
    rule: ContractRule,
    eval_name: str,
    eval_result: NormalizedEvalResult,
    baseline: BaselineData | None,
) -> Violation | None:
    """Check one rule; returns the violation or ``None`` when the rule holds."""
    actual = eval_result.metrics.get(rule.metric)
    if actual is None:
        return Violation(
            eval_name=eval_name,
            rule=rule,
            actual_value=_MISSING,
            explanation=f'Metric "{rule.metric}" was not found in eval results',
        )

    if rule.baseline == "fixed":
        if rule.threshold is None:
            return Violation(
                eval_name=eval_name,
                rule=rule,
                actual_value=actual,
                explanation='Rule has "fixed" baseline but no threshold specified',
            )
        if not compare_values(actual, rule.operator, rule.threshold):
            return Violation(
                eval_name=eval_name,
                rule=rule,
                actual_value=actual,
                baseline_value=rule.threshold,
                explanation=(
                    f"{rule.metric} = {stringify(actual)}, "
                    f"expected {rule.operator} {stringify(rule.threshold)}"
                ),
            )
        return None

    # Relative baselines: no baseline (first run) or a new metric passes.
    baseline_value: MetricValue | None = None
    if baseline is not None:
        baseline_value = baseline.metrics.get(rule.metric)
    if baseline_value is None:
        return None

    delta = compute_delta(actual, baseline_value)
    if delta is None:
        if not compare_values(actual, rule.operator, baseline_value):
            return Violation(
                eval_name=eval_name,
                rule=rule,
                actual_value=actual,
                baseline_value=baseline_value,
                explanation=(
                    f"{rule.metric} = {stringify(actual)}, "
                    f"baseline was {stringify(baseline_value)}"
                ),
            )
        return None

    # One-sided: only an increase beyond max_delta counts as a regression.
    if rule.max_delta is not None and delta > rule.max_delta:
        return Violation(
            eval_name=eval_name,
            rule=rule,
            actual_value=actual,
            baseline_value=baseline_value,
            delta=delta,
            explanation=(
                f"{rule.metric} regressed by {format_delta(delta)} "
                f"(max allowed: {stringify(rule.max_delta)})"
            ),
        )

    if not compare_values(actual, rule.operator, baseline_value):
        return Violation(
            eval_name=eval_name,
            rule=rule,
            actual_value=actual,
            baseline_value=baseline_value,
            delta=delta,
            explanation=(
                f"{rule.metric} = {stringify(actual)}, "
                f"expected {rule.operator} {stringify(baseline_value)}"
            ),
        )
    return None


def _missing_eval_violation(required_eval: RequiredEval) -> Violation:
    return Violation(
        eval_name=required_eval.name,
        rule=ContractRule(
            metric="*",
            operator="==",
            baseline="fixed",
            description="Required eval must be present",
        ),
        actual_value=_MISSING,
        explanation=f'Required eval "{required_eval.name}" was not found in results',
    )


def map_violation_action(action: ViolationAction) -> DecisionStatus:
    # "warn" maps to REQUIRES_APPROVAL, same as require_approval.
    if action == "block":
        return "BLOCK"
    return "REQUIRES_APPROVAL"


def build_violation_summary(violations: list[Violation], action: ViolationAction) -> str:
    if action == "block":
        action_text = "Blocked"
    elif action == "require_approval":
        action_text = "Requires approval"
    else:
        action_text = "Warning"
    eval_count = len({violation.eval_name for violation in violations})
    eval_text = "1 eval" if eval_count == 1 else f"{eval_count} evals"
    return f"{action_text}: {len(violations)} violation(s) in {eval_text}"


def evaluate_required_evals(
    contract: EvalContract,
    eval_results: Sequence[NormalizedEvalResult],
    baselines: Mapping[str, BaselineData],
) -> Decision:
    required_evals = contract.required_evals
    if not required_evals:
        raise ConfigurationError("Contract must have either 'requiredEvals' or 'policy'")

    # Duplicate eval names: the later result wins.
    results_by_name: dict[str, NormalizedEvalResult] = {}
    for result in eval_results:
        results_by_name[result.eval_name] = result

    violations: list[Violation] = []
    for required_eval in required_evals:
        eval_result = results_by_name.get(required_eval.name)
        if eval_result is None:
            violations.append(_missing_eval_violation(required_eval))
            continue

        baseline = baselines.get(required_eval.name)
        for rule in required_eval.rules:
            violation = evaluate_rule(rule, required_eval.name, eval_result, baseline)
            if violation is not None:
                logger.debug(
                    "Rule violated: %s",
                    violation.explanation,
                    extra={
                        "evalgate_eval_name": required_eval.name,
                        "evalgate_metric": rule.metric,
                    },
                )
                violations.append(violation)

    if not violations:
        return Decision(
            status="PASS",
            contract_name=contract.name,
            contract_version=contract.version,
            summary=f"All {len(required_evals)} eval(s) passed contract requirements",
        )

    action: ViolationAction = contract.on_violation.action if contract.on_violation else "warn"
    return Decision(
        status=map_violation_action(action),
        contract_name=contract.name,
        contract_version=contract.version,
        violations=violations,
        summary=build_violation_summary(violations, action),
    )


def evaluate(
    *,
    contract: EvalContract,
    eval_results: Sequence[NormalizedEvalResult],
    baselines: Mapping[str, BaselineData] | None = None,
    signals: Sequence[Signal] | None = None,
    environment: str | None = None,
) -> Decision:
    """Evaluate a contract; dispatches to the policy engine when one is declared."""
    baselines = baselines or {}
    if contract.policy is not None:
        decision = evaluate_policy(
            contract=contract,
            eval_results=eval_results,
            baselines=baselines,
            signals=signals or [],
            environment=environment or contract.environment,
        )
    else:
        decision = evaluate_required_evals(contract, eval_results, baselines)

    logger.info(
        "Contract %s evaluated: %s",
        contract.name,
        decision.status,
        extra={"evalgate_contract": contract.name, "evalgate_status": decision.status},
    )
    return decision
