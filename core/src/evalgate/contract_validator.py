"""Semantic contract checks that the schema cannot express."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .contract import ContractRule, EvalContract, EvalPolicyCondition
from .errors import ValidationIssue

_EQUALITY_OPERATORS = frozenset({"==", "!="})


@dataclass(frozen=True)
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


def _validate_rule(
    rule: ContractRule, path: str, errors: list[ValidationIssue], warnings: list[ValidationIssue]
) -> None:
    if rule.baseline == "fixed" and rule.threshold is None:
        errors.append(
            ValidationIssue(
                path=f"{path}.threshold",
                message='Rules with baseline "fixed" must specify a threshold',
                code="missing_threshold",
            )
        )

    if (
        rule.baseline in ("previous", "main")
        and rule.max_delta is None
        and rule.operator not in _EQUALITY_OPERATORS
    ):
        warnings.append(
            ValidationIssue(
                path=f"{path}.maxDelta",
                message=f'Consider specifying maxDelta for "{rule.baseline}" baseline comparisons',
                code="missing_max_delta",
            )
        )

    if rule.max_delta == 0:
        warnings.append(
            ValidationIssue(
                path=f"{path}.maxDelta",
                message="maxDelta of 0 allows no regression - this is very strict",
                code="zero_tolerance",
            )
        )


def _validate_policy(contract: EvalContract, errors: list[ValidationIssue]) -> None:
    policy = contract.policy
    if policy is None:
        return

    chains = [("policy.rules", policy.rules or [])]
    for env_name, env_policy in (policy.environments or {}).items():
        chains.append((f"policy.environments.{env_name}.rules", env_policy.rules or []))

    for chain_path, rules in chains:
        for index, rule in enumerate(rules):
            if not isinstance(rule.when, EvalPolicyCondition):
                continue
            condition = rule.when.eval_
            if condition.baseline == "fixed" and condition.threshold is None:
                errors.append(
                    ValidationIssue(
                        path=f"{chain_path}[{index}].when.eval.threshold",
                        message='Conditions with baseline "fixed" must specify a threshold',
                        code="missing_threshold",
                    )
                )


def validate_contract(contract: EvalContract) -> ValidationResult:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    seen: set[str] = set()
    for required_eval in contract.required_evals or []:
        if required_eval.name in seen:
            errors.append(
                ValidationIssue(
                    path=f"requiredEvals.{required_eval.name}",
                    message=f'Duplicate eval name: "{required_eval.name}"',
                    code="duplicate_eval_name",
                )
            )
        seen.add(required_eval.name)

        for index, rule in enumerate(required_eval.rules):
            _validate_rule(rule, f"requiredEvals.{required_eval.name}.rules[{index}]", errors, warnings)

    _validate_policy(contract, errors)

    if contract.policy is not None and contract.required_evals:
        warnings.append(
            ValidationIssue(
                path="requiredEvals",
                message="Contract defines a policy; requiredEvals are ignored during evaluation",
                code="policy_overrides_required_evals",
            )
        )

    if contract.environment == "production" and not contract.description:
        warnings.append(
            ValidationIssue(
                path="description",
                message="Production contracts should have a description",
                code="missing_description",
            )
        )

    return ValidationResult(errors=errors, warnings=warnings)
