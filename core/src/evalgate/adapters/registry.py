"""Ordered, immutable adapter registry."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from ..errors import ConfigurationError, FormatError
from ..eval_result import NormalizedEvalResult
from .base import EvalAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters in detection priority order; the first ``supports`` hit wins."""

    __slots__ = ("_adapters",)

    def __init__(self, adapters: Iterable[EvalAdapter]):
        adapters = tuple(adapters)
        names = [adapter.name for adapter in adapters]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate adapter names: {', '.join(duplicates)}")
        self._adapters = adapters

    def __iter__(self) -> Iterator[EvalAdapter]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def __repr__(self) -> str:
        return f"AdapterRegistry({list(self.names())!r})"

    @property
    def adapters(self) -> tuple[EvalAdapter, ...]:
        return self._adapters

    def names(self) -> list[str]:
        return [adapter.name for adapter in self._adapters]

    def get(self, name: str) -> EvalAdapter:
        for adapter in self._adapters:
            if adapter.name == name:
                return adapter
        raise ConfigurationError(
            f'Unknown adapter: "{name}". Available adapters: {", ".join(self.names())}'
        )

    def detect(self, data: Any) -> EvalAdapter | None:
        for adapter in self._adapters:
            if adapter.supports(data):
                return adapter
        return None

    def parse(self, data: Any) -> NormalizedEvalResult:
        adapter = self.detect(data)
        if adapter is None:
            raise FormatError(
                f"Unable to detect eval format. Supported formats: {', '.join(self.names())}"
            )
        logger.debug("Detected %s format", adapter.name, extra={"evalgate_adapter": adapter.name})
        return adapter.parse(data)

    def parse_with(self, data: Any, name: str) -> NormalizedEvalResult:
        return self.get(name).parse(data)

    def prepend(self, adapter: EvalAdapter) -> "AdapterRegistry":
        """New registry that tries ``adapter`` before the existing ones."""
        return AdapterRegistry((adapter, *self._adapters))
