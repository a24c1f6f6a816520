"""Eval contract models: legacy required-eval rules and signal-aware policies.

A contract governs evaluation through exactly one rule form:

- ``requiredEvals`` + ``onViolation`` (legacy metric rules), or
- ``policy`` (environment-scoped, first-match-wins rule chains).

When both are present the policy governs and the required evals are ignored.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import ConfigDict, Field, field_validator, model_validator

from .eval_result import BaselineType, WireModel
from .signals import SignalType
from .source_config import ContractSources

ComparisonOperator = Literal["==", "!=", "<", "<=", ">", ">="]
ViolationAction = Literal["block", "require_approval", "warn"]
PolicyAction = Literal["pass", "block", "require_approval"]
Environment = Literal["development", "staging", "production"]

CONTRACT_VERSION = 1


class ContractRule(WireModel):
    metric: str
    operator: ComparisonOperator
    baseline: BaselineType
    max_delta: float | None = None
    threshold: float | None = None
    description: str | None = None

    @field_validator("metric")
    @classmethod
    def metric_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("metric must not be empty")
        return value


class RequiredEval(WireModel):
    name: str
    rules: list[ContractRule]
    description: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be empty")
        return value

    @field_validator("rules")
    @classmethod
    def rules_not_empty(cls, value: list[ContractRule]) -> list[ContractRule]:
        if not value:
            raise ValueError("rules must not be empty")
        return value


class ViolationHandler(WireModel):
    action: ViolationAction
    message: str | None = None


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class EvalCondition(WireModel):
    metric: str
    operator: ComparisonOperator
    baseline: BaselineType
    threshold: float | None = None
    max_delta: float | None = None

    @field_validator("metric")
    @classmethod
    def metric_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("metric must not be empty")
        return value


class SignalCondition(WireModel):
    type: SignalType | None = None
    name: str | None = None
    field: str | None = None
    operator: ComparisonOperator | None = None
    value: Any = None


class EvalPolicyCondition(WireModel):
    model_config = ConfigDict(extra="forbid")

    eval_: EvalCondition = Field(alias="eval")


class SignalPolicyCondition(WireModel):
    model_config = ConfigDict(extra="forbid")

    signal: SignalCondition


PolicyCondition = Union[EvalPolicyCondition, SignalPolicyCondition]


class PolicyOutcome(WireModel):
    action: PolicyAction
    reason: str | None = None


class PolicyRule(WireModel):
    when: PolicyCondition
    then: PolicyOutcome


class EnvironmentPolicy(WireModel):
    default: PolicyAction | None = None
    rules: list[PolicyRule] | None = None


class Policy(WireModel):
    environments: dict[str, EnvironmentPolicy] | None = None
    rules: list[PolicyRule] | None = None

    def rule_chain(self, environment: str) -> list[PolicyRule]:
        """Global rules first, then the environment's own rules."""
        env_policy = (self.environments or {}).get(environment)
        env_rules = (env_policy.rules if env_policy else None) or []
        return [*(self.rules or []), *env_rules]

    def default_action(self, environment: str) -> PolicyAction:
        env_policy = (self.environments or {}).get(environment)
        if env_policy is not None and env_policy.default is not None:
            return env_policy.default
        return "pass"


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class EvalContract(WireModel):
    version: Literal[1]
    name: str
    description: str | None = None
    environment: Environment = "production"
    sources: ContractSources | None = None
    required_evals: list[RequiredEval] | None = None
    policy: Policy | None = None
    on_violation: ViolationHandler | None = None
    metadata: dict[str, str] | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be empty")
        return value

    @field_validator("required_evals")
    @classmethod
    def required_evals_not_empty(cls, value: list[RequiredEval] | None) -> list[RequiredEval] | None:
        if value is not None and not value:
            raise ValueError("requiredEvals must not be empty")
        return value

    @model_validator(mode="after")
    def validate_rule_form(self) -> "EvalContract":
        if self.required_evals is None and self.policy is None:
            raise ValueError("Contract must have either 'requiredEvals' or 'policy'")
        if self.required_evals is not None and self.on_violation is None:
            raise ValueError("onViolation is required when requiredEvals is present")
        return self

    @property
    def uses_policy(self) -> bool:
        return self.policy is not None
