"""Policy (signal-aware) evaluation: environment-scoped, first-match-wins rule chains.

The chain is the policy's global rules followed by the environment's rules.
The first rule whose condition holds decides the action; later rules are not
consulted. With no match, the environment default applies, else ``pass``.

Two tolerance semantics differ from the legacy engine and are kept as-is:

- a relative eval condition with no baseline (or no baseline metric) is *true*,
  so the rule matches and its action fires;
- ``maxDelta`` is a two-sided band here (``|delta| <= maxDelta``), while the
  legacy engine only flags increases.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .contract import (
    EvalCondition,
    EvalContract,
    EvalPolicyCondition,
    PolicyAction,
    PolicyCondition,
    SignalCondition,
)
from .decision import Decision
from .errors import ConfigurationError, DecisionStatus
from .eval_result import BaselineData, NormalizedEvalResult
from .signals import Signal
from .values import compare_values, compute_delta, stringify

logger = logging.getLogger(__name__)

_STATUS_BY_ACTION: dict[str, DecisionStatus] = {
    "pass": "PASS",
    "block": "BLOCK",
    "require_approval": "REQUIRES_APPROVAL",
}


def map_policy_action(action: PolicyAction) -> DecisionStatus:
    return _STATUS_BY_ACTION[action]


def evaluate_eval_condition(
    condition: EvalCondition,
    eval_results: Sequence[NormalizedEvalResult],
    baselines: Mapping[str, BaselineData],
) -> bool:
    # Only the first result that carries the metric is consulted.
    for result in eval_results:
        actual = result.metrics.get(condition.metric)
        if actual is None:
            continue

        if condition.baseline == "fixed":
            if condition.threshold is None:
                return False
            return compare_values(actual, condition.operator, condition.threshold)

        baseline = baselines.get(result.eval_name)
        if baseline is None:
            return True
        baseline_value = baseline.metrics.get(condition.metric)
        if baseline_value is None:
            return True

        delta = compute_delta(actual, baseline_value)
        if condition.max_delta is not None and delta is not None:
            if abs(delta) <= condition.max_delta:
                return True
        return compare_values(actual, condition.operator, baseline_value)

    return False


def _resolve_signal_field(signal: Signal, field: str) -> tuple[bool, Any]:
    """Look the field up in the signal's value object, then in its metadata."""
    if isinstance(signal.value, dict) and field in signal.value:
        return True, signal.value[field]
    if signal.metadata and field in signal.metadata:
        return True, signal.metadata[field]
    return False, None


def evaluate_signal_condition(condition: SignalCondition, signals: Sequence[Signal]) -> bool:
    matched = list(signals)
    if condition.type:
        matched = [signal for signal in matched if signal.type == condition.type]
    if condition.name:
        matched = [signal for signal in matched if signal.name == condition.name]
    if not matched:
        return False

    # Without operator/value the condition is a presence check.
    if condition.operator is None or condition.value is None:
        return True

    expected_raw = condition.value
    for signal in matched:
        actual: Any = signal.value
        if condition.field:
            found, actual = _resolve_signal_field(signal, condition.field)
            if not found:
                continue

        expected: Any = expected_raw
        if isinstance(actual, str) and not isinstance(expected, str):
            expected = stringify(expected)
        elif isinstance(expected, str) and not isinstance(actual, str):
            actual = stringify(actual)

        if compare_values(actual, condition.operator, expected):
            return True

    return False


def evaluate_condition(
    condition: PolicyCondition,
    eval_results: Sequence[NormalizedEvalResult],
    signals: Sequence[Signal],
    baselines: Mapping[str, BaselineData],
) -> bool:
    if isinstance(condition, EvalPolicyCondition):
        return evaluate_eval_condition(condition.eval_, eval_results, baselines)
    return evaluate_signal_condition(condition.signal, signals)


def evaluate_policy(
    *,
    contract: EvalContract,
    eval_results: Sequence[NormalizedEvalResult],
    signals: Sequence[Signal],
    environment: str,
    baselines: Mapping[str, BaselineData] | None = None,
) -> Decision:
    policy = contract.policy
    if policy is None:
        raise ConfigurationError(f"Contract {contract.name!r} has no policy")
    baselines = baselines or {}

    action: PolicyAction | None = None
    reason: str | None = None
    for index, rule in enumerate(policy.rule_chain(environment)):
        if evaluate_condition(rule.when, eval_results, signals, baselines):
            action = rule.then.action
            reason = rule.then.reason
            logger.debug(
                "Policy rule %d matched: %s",
                index,
                action,
                extra={"evalgate_environment": environment, "evalgate_rule_index": index},
            )
            break

    if action is None:
        action = policy.default_action(environment)
        logger.debug(
            "No policy rule matched; using default %s",
            action,
            extra={"evalgate_environment": environment},
        )

    return Decision(
        status=map_policy_action(action),
        contract_name=contract.name or "unknown",
        contract_version=contract.version,
        summary=reason or f"Policy evaluation: {action}",
    )
