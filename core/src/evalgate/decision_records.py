"""Assemble and render write-once decision records."""

from __future__ import annotations

import json
import logging
from typing import Sequence

from .contract import EvalContract
from .decision import Decision, DecisionRecord
from .decision_hashing import hash_decision_inputs
from .eval_result import NormalizedEvalResult
from .signals import Signal

logger = logging.getLogger(__name__)


def create_decision_record(
    *,
    decision: Decision,
    environment: str,
    contract: EvalContract,
    eval_results: Sequence[NormalizedEvalResult] | None = None,
    signals: Sequence[Signal] | None = None,
    commit: str | None = None,
    evidence: Sequence[str] | None = None,
) -> DecisionRecord:
    """Stamp a decision with input hashes; ``reason`` is the summary unless it passed."""
    inputs = hash_decision_inputs(contract=contract, eval_results=eval_results, signals=signals)
    record = DecisionRecord(
        commit=commit,
        environment=environment,
        decision=decision.status,
        reason=decision.summary if decision.status != "PASS" else None,
        inputs=inputs,
        evidence=list(evidence) if evidence is not None else None,
    )
    logger.info(
        "Decision record created: %s",
        record.decision,
        extra={
            "evalgate_status": record.decision,
            "evalgate_environment": environment,
            "evalgate_policy_hash": inputs.policy_hash,
        },
    )
    return record


def format_decision_record(record: DecisionRecord) -> str:
    return json.dumps(record.to_wire(), indent=2, ensure_ascii=False)
