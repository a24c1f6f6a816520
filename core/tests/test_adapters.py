from __future__ import annotations

import pytest

from evalgate.adapters import (
    DEFAULT_REGISTRY,
    available_adapters,
    detect_adapter,
    parse_eval_result,
    parse_with_adapter,
)
from evalgate.adapters.generic import GenericAdapter
from evalgate.adapters.promptfoo import PromptfooAdapter
from evalgate.adapters.registry import AdapterRegistry
from evalgate.errors import ConfigurationError, FormatError


def _promptfoo_export() -> dict:
    return {
        "evalId": "eval-abc",
        "timestamp": "2024-05-01T12:00:00Z",
        "results": [
            {
                "provider": "openai:gpt-4",
                "success": True,
                "score": 0.9,
                "namedScores": {"relevance": 0.8},
                "latencyMs": 100,
                "cost": 0.01,
            },
            {
                "provider": "openai:gpt-4",
                "success": False,
                "score": 0.5,
                "namedScores": {"relevance": 0.6},
                "latencyMs": 300,
                "cost": 0.03,
            },
        ],
        "stats": {"successes": 1, "failures": 1, "tokenUsage": {"total": 500, "prompt": 400, "completion": 100}},
    }


def _langsmith_export() -> dict:
    return {
        "name": "qa-dataset",
        "created_at": "2024-05-01T10:00:00Z",
        "results": [
            {
                "run_id": "r1",
                "feedback": [{"key": "correctness", "score": 1}, {"key": "helpfulness", "score": 0.5}],
                "execution_time": 1.5,
            },
            {
                "run_id": "r2",
                "feedback": [{"key": "correctness", "score": 0}],
                "execution_time": 2.5,
            },
        ],
        "aggregate_feedback": {"helpfulness": 0.6},
    }


def _openevals_export() -> dict:
    return {
        "eval_name": "rag-faithfulness",
        "model": "claude-3",
        "results": [
            {"scores": {"faithfulness": 0.8}, "passed": True},
            {"scores": {"faithfulness": 0.6}, "passed": False},
        ],
    }


def test_available_adapters_in_detection_order() -> None:
    assert available_adapters() == ["promptfoo", "langsmith", "openevals", "generic"]
    assert len(DEFAULT_REGISTRY) == 4


def test_promptfoo_metrics() -> None:
    result = parse_eval_result(_promptfoo_export())

    assert result.eval_name == "promptfoo"
    assert result.run_id == "eval-abc"
    assert result.timestamp == "2024-05-01T12:00:00Z"
    assert result.metadata == {"model": "openai:gpt-4"}
    metrics = result.metrics
    assert metrics["pass_rate"] == 0.5
    assert metrics["fail_rate"] == 0.5
    assert metrics["total_tests"] == 2
    assert metrics["passed_tests"] == 1
    assert metrics["avg_score"] == pytest.approx(0.7)
    assert metrics["min_score"] == 0.5
    assert metrics["max_score"] == 0.9
    assert metrics["avg_relevance"] == pytest.approx(0.7)
    assert metrics["avg_latency_ms"] == 200
    assert metrics["p50_latency_ms"] == 100
    assert metrics["p95_latency_ms"] == 300
    assert metrics["total_cost"] == pytest.approx(0.04)
    assert metrics["avg_cost"] == pytest.approx(0.02)
    assert metrics["total_tokens"] == 500
    assert metrics["prompt_tokens"] == 400
    assert metrics["completion_tokens"] == 100


def test_promptfoo_wins_detection_over_later_adapters() -> None:
    data = _promptfoo_export()
    data["results"][0]["feedback"] = []

    assert detect_adapter(data).name == "promptfoo"


def test_promptfoo_schema_mismatch_is_a_format_error() -> None:
    data = _promptfoo_export()
    data["results"][0]["success"] = "sometimes"

    with pytest.raises(FormatError, match="Invalid Promptfoo format"):
        parse_eval_result(data)


def test_langsmith_metrics_prefer_aggregate_feedback() -> None:
    result = parse_eval_result(_langsmith_export())

    assert result.eval_name == "qa-dataset"
    assert result.run_id.startswith("langsmith-")
    assert result.timestamp == "2024-05-01T10:00:00Z"
    assert result.metrics["helpfulness"] == 0.6
    assert "avg_helpfulness" not in result.metrics
    assert result.metrics["avg_correctness"] == 0.5
    assert result.metrics["avg_execution_time"] == 2.0
    assert result.metrics["total_examples"] == 2


def test_langsmith_examples_and_run_metadata() -> None:
    data = {
        "examples": [{"id": "e1"}, {"id": "e2"}, {"id": "e3"}],
        "run_metadata": {"run_name": "nightly-7", "model": "gpt-4o", "commit": "abc123"},
        "modified_at": "2024-05-02T00:00:00Z",
    }

    result = parse_with_adapter(data, "langsmith")

    assert result.eval_name == "langsmith"
    assert result.run_id == "nightly-7"
    assert result.timestamp == "2024-05-02T00:00:00Z"
    assert result.metrics == {"dataset_size": 3}
    assert result.metadata == {"model": "gpt-4o", "commit": "abc123"}


def test_openevals_per_example_scores() -> None:
    result = parse_eval_result(_openevals_export())

    assert result.eval_name == "rag-faithfulness"
    assert result.run_id.startswith("openevals-")
    assert result.metadata == {"model": "claude-3"}
    assert result.metrics["avg_faithfulness"] == pytest.approx(0.7)
    assert result.metrics["min_faithfulness"] == 0.6
    assert result.metrics["max_faithfulness"] == 0.8
    assert result.metrics["pass_rate"] == 0.5
    assert result.metrics["total_examples"] == 2


def test_openevals_summary() -> None:
    result = parse_eval_result({"dataset": "golden", "summary": {"total": 10, "passed": 8, "accuracy": 0.8}})

    assert result.eval_name == "golden"
    assert result.metrics["accuracy"] == 0.8
    assert result.metrics["total_examples"] == 10
    assert result.metrics["passed_examples"] == 8
    assert result.metrics["pass_rate"] == 0.8
    assert result.metrics["fail_rate"] == pytest.approx(0.2)


def test_openevals_keeps_precomputed_metrics() -> None:
    data = {
        "eval_id": "oe-1",
        "metrics": {"faithfulness": 0.95},
        "results": [{"scores": {"faithfulness": 0.5}}],
    }

    result = parse_eval_result(data)

    assert result.run_id == "oe-1"
    assert result.metrics == {"faithfulness": 0.95}


def test_generic_format_is_not_claimed_by_openevals() -> None:
    data = {"evalName": "custom", "runId": "r1", "eval_id": "x", "metrics": {"accuracy": 0.9}}

    assert detect_adapter(data).name == "generic"


def test_generic_format() -> None:
    data = {
        "evalName": "custom",
        "runId": "r1",
        "timestamp": "2024-05-01T12:00:00Z",
        "metrics": {"accuracy": 0.9, "passed": True, "label": "ok"},
        "metadata": {"model": "gpt-4", "commit": "abc", "team": "search"},
    }

    result = parse_eval_result(data)

    assert result.eval_name == "custom"
    assert result.run_id == "r1"
    assert result.metrics == {"accuracy": 0.9, "passed": True, "label": "ok"}
    assert result.metadata == {"model": "gpt-4", "commit": "abc", "team": "search"}


def test_generic_requires_run_id() -> None:
    with pytest.raises(FormatError, match="Invalid generic eval format"):
        parse_eval_result({"evalName": "custom", "metrics": {"accuracy": 0.9}})


def test_generic_rejects_bad_timestamp() -> None:
    with pytest.raises(FormatError, match="timestamp"):
        parse_eval_result(
            {"evalName": "custom", "runId": "r1", "timestamp": "yesterday", "metrics": {}}
        )


def test_unrecognized_payload() -> None:
    assert detect_adapter({"metrics": {"accuracy": 0.9}}) is None
    assert detect_adapter(["not", "an", "object"]) is None

    with pytest.raises(FormatError, match="Unable to detect eval format. Supported formats: promptfoo"):
        parse_eval_result({"metrics": {"accuracy": 0.9}})


def test_unknown_adapter_name() -> None:
    with pytest.raises(ConfigurationError, match='Unknown adapter: "braintrust"'):
        parse_with_adapter(_promptfoo_export(), "braintrust")


def test_forced_adapter_skips_detection() -> None:
    with pytest.raises(FormatError, match="Invalid generic eval format"):
        parse_with_adapter(_promptfoo_export(), "generic")


def test_custom_registry_is_injectable() -> None:
    registry = AdapterRegistry([GenericAdapter()])

    assert detect_adapter(_promptfoo_export(), registry=registry) is None
    assert available_adapters(registry=registry) == ["generic"]

    extended = registry.prepend(PromptfooAdapter())
    assert extended.names() == ["promptfoo", "generic"]
    assert registry.names() == ["generic"]
    assert detect_adapter(_promptfoo_export(), registry=extended).name == "promptfoo"


class _InHouseAdapter(GenericAdapter):
    name = "in-house"
    display_name = "in-house eval"


def test_prepended_adapter_wins_detection() -> None:
    data = {"evalName": "custom", "runId": "r1", "metrics": {"accuracy": 0.9}}
    registry = DEFAULT_REGISTRY.prepend(_InHouseAdapter())

    assert registry.names()[0] == "in-house"
    assert detect_adapter(data, registry=registry).name == "in-house"
    assert detect_adapter(data).name == "generic"
    assert parse_eval_result(data, registry=registry).metrics == {"accuracy": 0.9}

def test_registry_rejects_duplicate_names() -> None:
    with pytest.raises(ConfigurationError, match="Duplicate adapter names: generic"):
        AdapterRegistry([GenericAdapter(), GenericAdapter()])
