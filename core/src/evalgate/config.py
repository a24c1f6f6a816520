import os
from dataclasses import dataclass

from .errors import ConfigurationError
from .logging import LEVELS

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class Config:
    log_format: str = "text"
    log_level: str = "WARNING"
    environment: str | None = None
    strict: bool = False
    color: bool = True

    @classmethod
    def from_env(cls) -> "Config":
        log_format = os.environ.get("EVALGATE_LOG_FORMAT", "text").strip().lower()
        if log_format not in ("text", "json"):
            raise ConfigurationError("EVALGATE_LOG_FORMAT must be 'text' or 'json'")

        log_level = (os.environ.get("EVALGATE_LOG_LEVEL") or "WARNING").strip().upper()
        if log_level not in LEVELS:
            raise ConfigurationError(f"EVALGATE_LOG_LEVEL must be one of {', '.join(LEVELS)}")

        return cls(
            log_format=log_format,
            log_level=log_level,
            environment=os.environ.get("EVALGATE_ENVIRONMENT") or None,
            strict=_env_flag("EVALGATE_STRICT", False),
            color=_env_flag("EVALGATE_COLOR", True) and "NO_COLOR" not in os.environ,
        )
