"""User-authored source configuration: how to pull metrics out of CSV/JSON/JSONL exports.

Example (YAML, inside a contract's ``sources`` block):

    sources:
      csv:
        metrics:
          - column: accuracy
            aggregate: avg
          - column: latency_ms
            aggregate: p95
            as: latency_p95
          - column: status
            aggregate: pass_rate
        eval_name:
          fixed: quality-metrics
"""

from __future__ import annotations

from typing import Literal, Union, get_args

from pydantic import Field, field_validator, model_validator

from .eval_result import WireModel

AggregationMethod = Literal[
    "avg",
    "sum",
    "min",
    "max",
    "count",
    "p50",
    "p90",
    "p95",
    "p99",
    "pass_rate",
    "fail_rate",
    "first",
    "last",
]
AGGREGATION_METHODS: tuple[str, ...] = get_args(AggregationMethod)

SourceType = Literal["csv", "json", "jsonl"]

FilterValue = Union[bool, int, float, str]


class RowFilter(WireModel):
    column: str
    equals: FilterValue | None = None
    not_equals: FilterValue | None = None


class MetricColumn(WireModel):
    column: str
    aggregate: AggregationMethod = "avg"
    as_: str | None = Field(default=None, alias="as")
    filter: RowFilter | None = None

    @field_validator("column")
    @classmethod
    def column_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("column must not be empty")
        return value

    @property
    def output_name(self) -> str:
        return self.as_ or self.column


class FixedValue(WireModel):
    fixed: str


class CsvOptions(WireModel):
    delimiter: str = ","
    quote: str = '"'
    has_header: bool = True

    @field_validator("delimiter", "quote")
    @classmethod
    def single_character(cls, value: str, info) -> str:
        if len(value) != 1:
            raise ValueError(f"{info.field_name} must be a single character")
        return value


class JsonOptions(WireModel):
    results_path: str | None = None


class EvalSourceConfig(WireModel):
    type: SourceType | None = None
    metrics: list[Union[str, MetricColumn]]
    eval_name: Union[str, FixedValue, None] = None
    run_id: Union[str, FixedValue, None] = None
    timestamp: str | None = None
    metadata: dict[str, str] | None = None
    csv: CsvOptions | None = None
    json_options: JsonOptions | None = Field(default=None, alias="json")

    @field_validator("metrics")
    @classmethod
    def metrics_not_empty(cls, value: list[Union[str, MetricColumn]]) -> list[Union[str, MetricColumn]]:
        if not value:
            raise ValueError("metrics must not be empty")
        return value

    def metric_columns(self) -> list[MetricColumn]:
        """Expand shorthand column names into full definitions (``avg`` by default)."""
        return [
            MetricColumn(column=item) if isinstance(item, str) else item
            for item in self.metrics
        ]


class ContractSources(WireModel):
    csv: EvalSourceConfig | None = None
    json_source: EvalSourceConfig | None = Field(default=None, alias="json")
    jsonl: EvalSourceConfig | None = None

    def for_type(self, source_type: str) -> EvalSourceConfig | None:
        if source_type == "csv":
            return self.csv
        if source_type == "json":
            return self.json_source
        if source_type == "jsonl":
            return self.jsonl
        return None

    @model_validator(mode="after")
    def at_least_one_source(self) -> "ContractSources":
        if self.csv is None and self.json_source is None and self.jsonl is None:
            raise ValueError("sources must define at least one of csv, json, jsonl")
        return self
