"""Adapter interface for third-party eval tool exports."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from statistics import fmean
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from ..errors import FormatError, summarize_pydantic
from ..eval_result import NormalizedEvalResult


def is_object(value: Any) -> bool:
    return isinstance(value, dict)


def first_item(data: dict[str, Any], key: str) -> dict[str, Any] | None:
    """First element of ``data[key]`` when it is a non-empty list of objects."""
    items = data.get(key)
    if isinstance(items, list) and items and is_object(items[0]):
        return items[0]
    return None


def mean(values: list[float]) -> float:
    return fmean(values)


def compact(mapping: dict[str, Any]) -> dict[str, Any] | None:
    """Drop ``None`` values; ``None`` when nothing is left."""
    kept = {key: value for key, value in mapping.items() if value is not None}
    return kept or None


class EvalAdapter(ABC):
    """Recognizes one tool's native JSON shape and normalizes it.

    ``supports`` is a cheap structural sniff. ``parse`` validates against the
    stricter ``schema`` and raises FormatError on mismatch, even when
    ``supports`` said yes.
    """

    name: ClassVar[str]
    display_name: ClassVar[str]
    schema: ClassVar[type[BaseModel]]

    @abstractmethod
    def supports(self, data: Any) -> bool: ...

    @abstractmethod
    def normalize(self, payload: Any) -> NormalizedEvalResult: ...

    def parse(self, data: Any) -> NormalizedEvalResult:
        try:
            payload = self.schema.model_validate(data)
        except ValidationError as exc:
            raise FormatError(
                f"Invalid {self.display_name} format: {summarize_pydantic(exc.errors())}"
            ) from exc
        return self.normalize(payload)

    def generate_run_id(self) -> str:
        return f"{self.name}-{int(time.time() * 1000)}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
