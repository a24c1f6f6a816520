# Detection order matters: more specific formats first, generic last.
from __future__ import annotations

from typing import Any

from ..eval_result import NormalizedEvalResult
from .base import EvalAdapter
from .generic import GenericAdapter
from .langsmith import LangSmithAdapter
from .openevals import OpenEvalsAdapter
from .promptfoo import PromptfooAdapter
from .registry import AdapterRegistry

DEFAULT_REGISTRY = AdapterRegistry(
    (
        PromptfooAdapter(),
        LangSmithAdapter(),
        OpenEvalsAdapter(),
        GenericAdapter(),
    )
)


def detect_adapter(data: Any, *, registry: AdapterRegistry = DEFAULT_REGISTRY) -> EvalAdapter | None:
    return registry.detect(data)


def parse_eval_result(
    data: Any, *, registry: AdapterRegistry = DEFAULT_REGISTRY
) -> NormalizedEvalResult:
    return registry.parse(data)


def parse_with_adapter(
    data: Any, adapter_name: str, *, registry: AdapterRegistry = DEFAULT_REGISTRY
) -> NormalizedEvalResult:
    return registry.parse_with(data, adapter_name)


def available_adapters(*, registry: AdapterRegistry = DEFAULT_REGISTRY) -> list[str]:
    return registry.names()


__all__ = [
    "DEFAULT_REGISTRY",
    "AdapterRegistry",
    "EvalAdapter",
    "GenericAdapter",
    "LangSmithAdapter",
    "OpenEvalsAdapter",
    "PromptfooAdapter",
    "available_adapters",
    "detect_adapter",
    "parse_eval_result",
    "parse_with_adapter",
]
