"""Turn CSV/JSON/JSONL eval exports into a NormalizedEvalResult via a source config."""

from __future__ import annotations

import json
import logging
import time
from pathlib import PurePath
from typing import Any, Mapping, Union

from pydantic import ValidationError

from .aggregator import aggregate, extract_column_values
from .contract import EvalContract
from .csv_parser import Row, is_csv, parse_csv
from .errors import ConfigurationError, FormatError, summarize_pydantic
from .eval_result import NormalizedEvalResult
from .source_config import ContractSources, EvalSourceConfig, FixedValue, SourceType

logger = logging.getLogger(__name__)

ROW_ARRAY_KEYS = ("results", "data", "items", "rows", "examples")

_EXTENSION_TYPES: dict[str, SourceType] = {
    ".csv": "csv",
    ".json": "json",
    ".jsonl": "jsonl",
    ".ndjson": "jsonl",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _coerce_config(config: Union[EvalSourceConfig, Mapping[str, Any]]) -> EvalSourceConfig:
    if isinstance(config, EvalSourceConfig):
        return config
    try:
        return EvalSourceConfig.model_validate(config)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid source config: {summarize_pydantic(exc.errors())}"
        ) from exc


def _load_json(content: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Invalid JSON: {exc.msg} (line {exc.lineno})") from exc


def detect_source_type(content: str) -> SourceType:
    trimmed = content.strip()
    if trimmed.startswith("{") or trimmed.startswith("["):
        return "json"
    return "csv"


def detect_file_type(file_path: str, content: str) -> SourceType:
    """Extension first; otherwise sniff the content (JSON when in doubt)."""
    by_extension = _EXTENSION_TYPES.get(PurePath(file_path).suffix.lower())
    if by_extension is not None:
        return by_extension

    trimmed = content.strip()
    if trimmed.startswith("{") or trimmed.startswith("["):
        lines = trimmed.split("\n")
        first_line = lines[0].strip()
        second_line = lines[1].strip() if len(lines) > 1 else ""
        if first_line.startswith("{") and first_line.endswith("}") and second_line.startswith("{"):
            return "jsonl"
        return "json"
    if is_csv(content):
        return "csv"
    return "json"


def flatten_object(obj: Mapping[str, Any], prefix: str = "") -> Row:
    """Dot-join nested keys; arrays are kept as their JSON text."""
    flat: Row = {}
    for key, value in obj.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_object(value, name))
        elif isinstance(value, list):
            flat[name] = json.dumps(value, separators=(",", ":"))
        else:
            flat[name] = value
    return flat


def _flatten_rows(items: list[Any]) -> list[Row]:
    rows: list[Row] = []
    for item in items:
        if not isinstance(item, Mapping):
            raise FormatError(f"Expected an object per row, got {type(item).__name__}")
        rows.append(flatten_object(item))
    return rows


def parse_json_rows(content: str, results_path: str | None = None) -> list[Row]:
    data = _load_json(content)

    results = data
    if results_path:
        for part in results_path.split("."):
            results = results.get(part) if isinstance(results, Mapping) else None

    if isinstance(results, list):
        return _flatten_rows(results)
    if isinstance(results, Mapping):
        for key in ROW_ARRAY_KEYS:
            if isinstance(results.get(key), list):
                return _flatten_rows(results[key])
        return [flatten_object(results)]
    return []


def parse_jsonl_rows(content: str) -> list[Row]:
    rows: list[Row] = []
    for line_number, line in enumerate(content.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as exc:
            raise FormatError(f"Invalid JSONL at line {line_number}: {exc.msg}") from exc
        rows.extend(_flatten_rows([item]))
    return rows


def parse_rows(content: str, source_type: SourceType, config: EvalSourceConfig) -> list[Row]:
    if source_type == "csv":
        csv_options = config.csv
        if csv_options is None:
            return parse_csv(content)[1]
        return parse_csv(
            content,
            delimiter=csv_options.delimiter,
            quote=csv_options.quote,
            has_header=csv_options.has_header,
        )[1]
    if source_type == "json":
        results_path = config.json_options.results_path if config.json_options else None
        return parse_json_rows(content, results_path)
    if source_type == "jsonl":
        return parse_jsonl_rows(content)
    raise ConfigurationError(f"Unsupported source type: {source_type}")


def _resolve_name(rows: list[Row], setting: Union[str, FixedValue, None], fallback: str) -> str:
    if setting is None:
        return fallback
    if isinstance(setting, FixedValue):
        return setting.fixed
    value = rows[0].get(setting) if rows else None
    if value is None or value == "":
        return fallback
    return str(value)


def aggregate_rows(rows: list[Row], config: EvalSourceConfig) -> NormalizedEvalResult:
    metrics: dict[str, float | int] = {}
    for metric in config.metric_columns():
        values = extract_column_values(rows, metric.column, metric.filter)
        if not any(value is not None and value != "" for value in values):
            logger.debug(
                "No values for column %s; metric omitted",
                metric.column,
                extra={"evalgate_metric": metric.output_name},
            )
            continue
        metrics[metric.output_name] = aggregate(values, metric.aggregate)

    first_row = rows[0] if rows else {}

    timestamp = None
    if config.timestamp:
        raw_timestamp = first_row.get(config.timestamp)
        timestamp = str(raw_timestamp) if raw_timestamp is not None else None

    metadata: dict[str, str] = {}
    for key, column in (config.metadata or {}).items():
        value = first_row.get(column)
        if value is not None:
            metadata[key] = str(value)

    try:
        return NormalizedEvalResult(
            eval_name=_resolve_name(rows, config.eval_name, "eval"),
            run_id=_resolve_name(rows, config.run_id, f"run-{_now_ms()}"),
            timestamp=timestamp,
            metrics=metrics,
            metadata=metadata or None,
        )
    except ValidationError as exc:
        raise FormatError(f"Invalid eval result: {summarize_pydantic(exc.errors())}") from exc


def parse_eval_source(
    content: str, config: Union[EvalSourceConfig, Mapping[str, Any]]
) -> NormalizedEvalResult:
    """Parse raw export content with an explicit source config.

    The source type comes from ``config.type`` or is sniffed from the content.
    """
    source_config = _coerce_config(config)
    source_type = source_config.type or detect_source_type(content)
    rows = parse_rows(content, source_type, source_config)
    result = aggregate_rows(rows, source_config)
    logger.debug(
        "Normalized %d %s row(s) into %d metric(s)",
        len(rows),
        source_type,
        len(result.metrics),
        extra={"evalgate_eval_name": result.eval_name, "evalgate_source_type": source_type},
    )
    return result


def _parse_normalized_json(content: str) -> NormalizedEvalResult:
    data = _load_json(content)
    if not (isinstance(data, Mapping) and data.get("evalName") and data.get("metrics")):
        raise ConfigurationError(
            "Could not auto-detect eval format. "
            'Add a "sources.json" section to the contract to define how to parse metrics.'
        )
    try:
        return NormalizedEvalResult.model_validate(
            {**data, "runId": data.get("runId") or f"run-{_now_ms()}"}
        )
    except ValidationError as exc:
        raise FormatError(f"Invalid eval result: {summarize_pydantic(exc.errors())}") from exc


def _contract_sources(contract: Any) -> ContractSources | None:
    if contract is None:
        return None
    if isinstance(contract, ContractSources):
        return contract
    if isinstance(contract, EvalContract):
        return contract.sources
    if isinstance(contract, Mapping) and contract.get("sources") is not None:
        try:
            return ContractSources.model_validate(contract["sources"])
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid sources config: {summarize_pydantic(exc.errors())}"
            ) from exc
    return None


def parse_eval_file(content: str, file_path: str, contract: Any = None) -> NormalizedEvalResult:
    """Parse an eval file using the contract's ``sources.<type>`` config.

    JSON without a config must already be a normalized result. CSV and JSONL
    always need a config.
    """
    file_type = detect_file_type(file_path, content)
    sources = _contract_sources(contract)
    source_config = sources.for_type(file_type) if sources is not None else None

    if source_config is None:
        if file_type == "json":
            return _parse_normalized_json(content)
        raise ConfigurationError(
            f"{file_type.upper()} files require a source config in the contract. "
            f'Add a "sources.{file_type}" section to define how to parse metrics.'
        )

    rows = parse_rows(content, file_type, source_config)
    result = aggregate_rows(rows, source_config)
    logger.debug(
        "Parsed %s as %s",
        file_path,
        file_type,
        extra={"evalgate_eval_name": result.eval_name, "evalgate_source_type": file_type},
    )
    return result


def validate_source_columns(
    headers: list[str], config: Union[EvalSourceConfig, Mapping[str, Any]]
) -> dict[str, Any]:
    """Report config columns that the source headers do not provide."""
    source_config = _coerce_config(config)
    required: list[str] = []
    for metric in source_config.metric_columns():
        required.append(metric.column)
        if metric.filter is not None:
            required.append(metric.filter.column)
    if isinstance(source_config.eval_name, str):
        required.append(source_config.eval_name)
    if isinstance(source_config.run_id, str):
        required.append(source_config.run_id)
    if source_config.timestamp:
        required.append(source_config.timestamp)
    if source_config.metadata:
        required.extend(source_config.metadata.values())

    known = set(headers)
    missing = [column for column in required if column not in known]
    return {"valid": not missing, "missing_columns": missing}
