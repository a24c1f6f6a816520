"""Signals: typed, non-metric decision inputs (human review, risk flags, references)."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator

from .errors import FormatError, summarize_pydantic
from .eval_result import WireModel, is_iso_timestamp

logger = logging.getLogger(__name__)

SignalType = Literal["eval", "human_review", "risk_flag", "external_reference"]
HumanDecisionType = Literal["approved", "rejected"]


class Signal(WireModel):
    id: str
    type: SignalType
    name: str
    value: Any = None
    metadata: dict[str, str] | None = None

    @field_validator("id", "name")
    @classmethod
    def validate_required_text(cls, value: str, info: Any) -> str:
        if not value.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return value


class HumanDecision(WireModel):
    """Approval/rejection artifact written by a reviewer."""

    decision: HumanDecisionType
    by: str
    reason: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @field_validator("by", "reason")
    @classmethod
    def validate_required_text(cls, value: str, info: Any) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(f"{info.field_name} must not be empty")
        return cleaned

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, value: str) -> str:
        if not is_iso_timestamp(value):
            raise ValueError("timestamp must be an ISO-8601 datetime")
        return value


def _fallback_signal_id(index: int) -> str:
    return f"signal-{index}-{int(time.time() * 1000)}"


def _parse_signal(data: Any, fallback_index: int) -> Signal:
    if isinstance(data, dict) and not data.get("id"):
        data = {**data, "id": _fallback_signal_id(fallback_index)}
    try:
        return Signal.model_validate(data)
    except ValidationError as exc:
        raise FormatError(f"Invalid signal format: {summarize_pydantic(exc.errors())}") from exc


def parse_signals(data: Any) -> list[Signal]:
    """Accept a list of signals, ``{"signals": [...]}``, or one bare signal."""
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict) and isinstance(data.get("signals"), list):
        items = data["signals"]
    else:
        items = [data]
    signals = [_parse_signal(item, index) for index, item in enumerate(items)]
    logger.debug("Parsed %d signal(s)", len(signals), extra={"evalgate_signal_count": len(signals)})
    return signals


def normalize_signals(signals: list[Signal]) -> list[Signal]:
    return [
        signal.model_copy(
            update={
                "id": signal.id or _fallback_signal_id(index),
                "metadata": signal.metadata or {},
            }
        )
        for index, signal in enumerate(signals)
    ]


def filter_signals_by_type(signals: list[Signal], signal_type: SignalType) -> list[Signal]:
    return [signal for signal in signals if signal.type == signal_type]


def find_signal_by_name(signals: list[Signal], name: str) -> Signal | None:
    for signal in signals:
        if signal.name == name:
            return signal
    return None


def find_signals(
    signals: list[Signal],
    signal_type: SignalType | None = None,
    name_pattern: str | None = None,
) -> list[Signal]:
    filtered = signals
    if signal_type:
        filtered = [signal for signal in filtered if signal.type == signal_type]
    if name_pattern:
        pattern = re.compile(name_pattern)
        filtered = [signal for signal in filtered if pattern.search(signal.name)]
    return filtered


def human_decision_to_signal(decision: HumanDecision, *, name: str = "human_approval") -> Signal:
    """Expose a reviewer artifact to policy rules as a ``human_review`` signal."""
    return Signal(
        id=f"human-review-{decision.timestamp}",
        type="human_review",
        name=name,
        value={"status": decision.decision, "by": decision.by, "reason": decision.reason},
        metadata={"timestamp": decision.timestamp},
    )
