"""Field-level diff between two contracts, for reviewing contract changes."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from .contract import ContractRule, EvalContract, Policy
from .eval_result import WireModel
from .values import snake_to_camel, stringify

_RULE_FIELDS = ("operator", "max_delta", "threshold", "baseline")


class ContractDiff(WireModel):
    field: str
    previous: Any = None
    current: Any = None

    @property
    def kind(self) -> str:
        if self.previous is None:
            return "added"
        if self.current is None:
            return "removed"
        return "changed"


class ContractDiffResult(WireModel):
    identical: bool
    diffs: list[ContractDiff] = Field(default_factory=list)
    summary: str


def _describe_policy(policy: Policy) -> str:
    global_rules = len(policy.rules or [])
    environments = ", ".join(sorted(policy.environments or {})) or "none"
    return f"{global_rules} global rule(s), environments: {environments}"


def _diff_field(diffs: list[ContractDiff], field: str, previous: Any, current: Any) -> None:
    if previous != current:
        diffs.append(ContractDiff(field=field, previous=previous, current=current))


def _diff_policy(diffs: list[ContractDiff], previous: Policy | None, current: Policy | None) -> None:
    if previous is None and current is None:
        return
    if previous is None:
        diffs.append(ContractDiff(field="policy", current="added"))
    elif current is None:
        diffs.append(ContractDiff(field="policy", previous="present"))
    elif previous.to_wire() != current.to_wire():
        diffs.append(
            ContractDiff(
                field="policy",
                previous=_describe_policy(previous),
                current=_describe_policy(current),
            )
        )


def _rules_by_metric(rules: list[ContractRule]) -> dict[str, ContractRule]:
    # The first rule for a metric is the one compared.
    by_metric: dict[str, ContractRule] = {}
    for rule in rules:
        by_metric.setdefault(rule.metric, rule)
    return by_metric


def build_contract_diff_summary(diffs: list[ContractDiff]) -> str:
    if not diffs:
        return "No changes detected"
    lines = [f"{len(diffs)} change(s) detected:"]
    for diff in diffs:
        if diff.kind == "added":
            lines.append(f"  + Added: {diff.field}")
        elif diff.kind == "removed":
            lines.append(f"  - Removed: {diff.field}")
        else:
            lines.append(
                f"  ~ Changed: {diff.field} ({stringify(diff.previous)} → {stringify(diff.current)})"
            )
    return "\n".join(lines)


def diff_contracts(previous: EvalContract, current: EvalContract) -> ContractDiffResult:
    diffs: list[ContractDiff] = []

    _diff_field(diffs, "name", previous.name, current.name)
    _diff_field(diffs, "environment", previous.environment, current.environment)
    _diff_field(diffs, "description", previous.description, current.description)
    _diff_field(
        diffs,
        "onViolation.action",
        previous.on_violation.action if previous.on_violation else None,
        current.on_violation.action if current.on_violation else None,
    )

    previous_evals = {required.name: required for required in previous.required_evals or []}
    current_evals = {required.name: required for required in current.required_evals or []}

    for name in current_evals:
        if name not in previous_evals:
            diffs.append(ContractDiff(field=f"requiredEvals.{name}", current="added"))
    for name in previous_evals:
        if name not in current_evals:
            diffs.append(ContractDiff(field=f"requiredEvals.{name}", previous="present"))

    for name, current_eval in current_evals.items():
        previous_eval = previous_evals.get(name)
        if previous_eval is None:
            continue

        previous_rules = _rules_by_metric(previous_eval.rules)
        current_rules = _rules_by_metric(current_eval.rules)
        prefix = f"requiredEvals.{name}.rules"

        for metric in current_rules:
            if metric not in previous_rules:
                diffs.append(ContractDiff(field=f"{prefix}.{metric}", current="added"))
        for metric in previous_rules:
            if metric not in current_rules:
                diffs.append(ContractDiff(field=f"{prefix}.{metric}", previous="present"))

        for metric, current_rule in current_rules.items():
            previous_rule = previous_rules.get(metric)
            if previous_rule is None:
                continue
            for attribute in _RULE_FIELDS:
                _diff_field(
                    diffs,
                    f"{prefix}.{metric}.{snake_to_camel(attribute)}",
                    getattr(previous_rule, attribute),
                    getattr(current_rule, attribute),
                )

    _diff_policy(diffs, previous.policy, current.policy)

    return ContractDiffResult(
        identical=not diffs,
        diffs=diffs,
        summary=build_contract_diff_summary(diffs),
    )
