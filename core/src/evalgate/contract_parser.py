"""Load contracts from mappings, YAML text or files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .contract import EvalContract
from .errors import ContractValidationError, ValidationIssue, issues_from_pydantic
from .values import snake_to_camel

logger = logging.getLogger(__name__)

YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def normalize_yaml_keys(data: Any) -> Any:
    """Recursively camelCase mapping keys (``required_evals`` -> ``requiredEvals``)."""
    if isinstance(data, list):
        return [normalize_yaml_keys(item) for item in data]
    if isinstance(data, dict):
        return {
            (snake_to_camel(key) if isinstance(key, str) else key): normalize_yaml_keys(value)
            for key, value in data.items()
        }
    return data


def parse_contract(data: Any) -> EvalContract:
    try:
        return EvalContract.model_validate(data)
    except ValidationError as exc:
        raise ContractValidationError(
            "Invalid contract format", issues_from_pydantic(exc.errors())
        ) from exc


def _syntax_error(message: str, error: Exception) -> ContractValidationError:
    return ContractValidationError(
        message, [ValidationIssue(path="", message=str(error), code="invalid_yaml")]
    )


def parse_contract_from_yaml(text: str) -> EvalContract:
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise _syntax_error("Invalid YAML syntax", exc) from exc
    return parse_contract(normalize_yaml_keys(parsed))


def parse_contract_from_json(text: str) -> EvalContract:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ContractValidationError(
            "Invalid JSON syntax",
            [ValidationIssue(path="", message=str(exc), code="invalid_json")],
        ) from exc
    return parse_contract(parsed)


def load_contract(path: str | Path) -> EvalContract:
    """Read a contract file; ``.yaml``/``.yml`` as YAML, anything else as JSON."""
    contract_path = Path(path)
    try:
        text = contract_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ContractValidationError(
            "Contract file is not valid UTF-8",
            [ValidationIssue(path="", message=str(exc), code="invalid_encoding")],
        ) from exc
    if contract_path.suffix.lower() in YAML_SUFFIXES:
        contract = parse_contract_from_yaml(text)
    else:
        contract = parse_contract_from_json(text)
    logger.debug(
        "Loaded contract %s from %s",
        contract.name,
        contract_path,
        extra={"evalgate_contract": contract.name},
    )
    return contract
