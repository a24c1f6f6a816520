"""SHA-256 fingerprints of decision inputs for audit records.

Inputs are serialized as compact JSON in model field order. Key order is not
canonicalized, so structurally equal inputs built in a different order can
hash differently.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Sequence

from .contract import EvalContract
from .decision import DecisionInputs
from .eval_result import NormalizedEvalResult
from .signals import Signal


def _serialize(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def hash_string(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def hash_eval_results(results: Sequence[NormalizedEvalResult]) -> str:
    return hash_string(_serialize([result.to_wire() for result in results]))


def hash_signals(signals: Sequence[Signal]) -> str:
    return hash_string(_serialize([signal.to_wire() for signal in signals]))


def hash_contract(contract: EvalContract) -> str:
    return hash_string(_serialize(contract.to_wire()))


def hash_decision_inputs(
    *,
    contract: EvalContract,
    eval_results: Sequence[NormalizedEvalResult] | None = None,
    signals: Sequence[Signal] | None = None,
) -> DecisionInputs:
    return DecisionInputs(
        eval_hash=hash_eval_results(eval_results) if eval_results is not None else None,
        signals_hash=hash_signals(signals) if signals is not None else None,
        policy_hash=hash_contract(contract),
    )
