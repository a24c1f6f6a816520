"""Command-line interface: a thin shell around the evalgate core."""

from __future__ import annotations

import getpass
import json
import os
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from pydantic import ValidationError

from evalgate.adapters import available_adapters, parse_eval_result, parse_with_adapter
from evalgate.config import Config
from evalgate.contract import EvalContract
from evalgate.contract_diff import diff_contracts
from evalgate.contract_parser import load_contract
from evalgate.contract_validator import validate_contract
from evalgate.decision import Decision
from evalgate.decision_records import create_decision_record, format_decision_record
from evalgate.errors import (
    EXIT_CODE_ERROR,
    ConfigurationError,
    ContractValidationError,
    EvalGateError,
    FormatError,
    exit_code_for_status,
    summarize_pydantic,
)
from evalgate.eval_diff import diff_eval_results
from evalgate.eval_result import BaselineData, NormalizedEvalResult, baselines_by_eval_name
from evalgate.evaluator import evaluate
from evalgate.formatter import format_decision, format_diff_result
from evalgate.logging import setup_logging
from evalgate.signals import HumanDecision, Signal, human_decision_to_signal, parse_signals
from evalgate.source_parser import detect_file_type, parse_eval_file


def _config() -> Config:
    ctx = click.get_current_context()
    return ctx.find_object(Config) or Config()


def _use_color(no_color: bool) -> bool:
    return _config().color and not no_color


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError(f"{path} is not valid UTF-8 text: {exc.reason} at byte {exc.start}") from exc


def _read_json(path: Path) -> Any:
    content = _read_text(path)
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Invalid JSON in {path}: {exc.msg} (line {exc.lineno})") from exc


def _fail(message: str, as_json: bool, color: bool) -> NoReturn:
    if as_json:
        click.echo(json.dumps({"error": True, "message": message}), err=True)
    else:
        click.echo(click.style(f"Error: {message}", fg="red") if color else f"Error: {message}", err=True)
    sys.exit(EXIT_CODE_ERROR)


def load_eval_results(
    paths: tuple[Path, ...] | list[Path],
    contract: EvalContract | None = None,
    adapter: str | None = None,
) -> list[NormalizedEvalResult]:
    """Load eval files: CSV/JSONL through source configs, JSON via config or adapters."""
    results: list[NormalizedEvalResult] = []
    for path in paths:
        content = _read_text(path)
        file_type = detect_file_type(str(path), content)
        has_json_source = (
            contract is not None
            and contract.sources is not None
            and contract.sources.json_source is not None
        )
        if file_type != "json" or has_json_source:
            results.append(parse_eval_file(content, str(path), contract))
            continue

        data = _read_json(path)
        items = data if isinstance(data, list) else [data]
        for item in items:
            if adapter:
                results.append(parse_with_adapter(item, adapter))
            else:
                results.append(parse_eval_result(item))
    return results


def load_baselines(
    path: Path, contract: EvalContract | None, adapter: str | None
) -> dict[str, BaselineData]:
    if not path.exists():
        click.echo(f"Warning: Baseline file not found: {path}", err=True)
        return {}
    return baselines_by_eval_name(load_eval_results([path], contract, adapter))


def load_signals(signal_paths: tuple[Path, ...], approval_paths: tuple[Path, ...]) -> list[Signal]:
    signals: list[Signal] = []
    for path in signal_paths:
        signals.extend(parse_signals(_read_json(path)))
    for path in approval_paths:
        try:
            human_decision = HumanDecision.model_validate(_read_json(path))
        except ValidationError as exc:
            raise FormatError(
                f"Invalid approval file {path}: {summarize_pydantic(exc.errors())}"
            ) from exc
        signals.append(human_decision_to_signal(human_decision))
    return signals


@click.group()
@click.version_option(package_name="evalgate")
@click.pass_context
def main(ctx: click.Context):
    """Eval-driven release enforcement for AI.

    Turns evaluation results into deterministic go/no-go decisions in CI/CD.
    """
    try:
        config = Config.from_env()
    except ConfigurationError as exc:
        _fail(str(exc), as_json=False, color=False)
    setup_logging(config.log_format, config.log_level)
    ctx.obj = config


_eval_paths = click.option(
    "--eval", "-e", "eval_paths",
    type=click.Path(dir_okay=False, path_type=Path),
    multiple=True,
    required=True,
    help="Eval result file (CSV, JSON or JSONL). Repeatable.",
)
_contract_path = click.option(
    "--contract", "-c", "contract_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Eval contract (YAML or JSON).",
)
_baseline_path = click.option(
    "--baseline", "-b", "baseline_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Baseline eval results to compare against.",
)
_signal_paths = click.option(
    "--signals", "-s", "signal_paths",
    type=click.Path(dir_okay=False, path_type=Path),
    multiple=True,
    help="Signals JSON file. Repeatable.",
)
_approval_paths = click.option(
    "--approval", "approval_paths",
    type=click.Path(dir_okay=False, path_type=Path),
    multiple=True,
    help="Approval/rejection file written by 'evalgate approve' or 'reject'.",
)
_adapter = click.option(
    "--adapter",
    type=click.Choice(available_adapters()),
    help="Force a specific adapter for JSON eval files.",
)
_environment = click.option(
    "--env", "environment",
    type=str,
    help="Environment for policy evaluation (defaults to the contract's).",
)
_no_color = click.option("--no-color", is_flag=True, help="Disable colored output.")


def _run_evaluation(
    contract_path: Path,
    eval_paths: tuple[Path, ...],
    baseline_path: Path | None,
    signal_paths: tuple[Path, ...],
    approval_paths: tuple[Path, ...],
    adapter: str | None,
    environment: str | None,
) -> tuple[EvalContract, list[NormalizedEvalResult], list[Signal], str, Decision]:
    contract = load_contract(contract_path)
    eval_results = load_eval_results(eval_paths, contract, adapter)
    baselines = load_baselines(baseline_path, contract, adapter) if baseline_path else {}
    signals = load_signals(signal_paths, approval_paths)
    env = environment or _config().environment or contract.environment
    decision = evaluate(
        contract=contract,
        eval_results=eval_results,
        baselines=baselines,
        signals=signals,
        environment=env,
    )
    return contract, eval_results, signals, env, decision


@main.command()
@_contract_path
@_eval_paths
@_baseline_path
@_signal_paths
@_approval_paths
@_adapter
@_environment
@click.option(
    "--record", "record_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a decision record (JSON) to this path.",
)
@click.option("--commit", type=str, help="Commit SHA stored in the decision record.")
@click.option("--json", "as_json", is_flag=True, help="Output the decision as JSON.")
@_no_color
@click.option("--verbose", is_flag=True, help="Show timestamps and next steps.")
def check(
    contract_path: Path,
    eval_paths: tuple[Path, ...],
    baseline_path: Path | None,
    signal_paths: tuple[Path, ...],
    approval_paths: tuple[Path, ...],
    adapter: str | None,
    environment: str | None,
    record_path: Path | None,
    commit: str | None,
    as_json: bool,
    no_color: bool,
    verbose: bool,
):
    """Evaluate a contract against eval results and enforce the decision.

    Exit codes: 0 PASS, 1 BLOCK, 2 REQUIRES_APPROVAL, 3 error.
    """
    color = _use_color(no_color)
    try:
        contract, eval_results, signals, env, decision = _run_evaluation(
            contract_path, eval_paths, baseline_path, signal_paths, approval_paths, adapter, environment
        )
        if record_path is not None:
            record = create_decision_record(
                decision=decision,
                environment=env,
                contract=contract,
                eval_results=eval_results,
                signals=signals if (signal_paths or approval_paths) else None,
                commit=commit,
                evidence=[str(path) for path in eval_paths],
            )
            record_path.write_text(format_decision_record(record) + "\n", encoding="utf-8")
    except ContractValidationError as exc:
        _fail(exc.format(), as_json, color)
    except (EvalGateError, OSError) as exc:
        _fail(str(exc), as_json, color)

    if as_json:
        click.echo(json.dumps(decision.to_wire(), indent=2))
    else:
        click.echo(format_decision(decision, colors=color, timestamps=verbose, verbose=verbose))
    sys.exit(exit_code_for_status(decision.status))


@main.command()
@_contract_path
@_eval_paths
@_baseline_path
@_signal_paths
@_approval_paths
@_adapter
@_environment
@_no_color
def explain(
    contract_path: Path,
    eval_paths: tuple[Path, ...],
    baseline_path: Path | None,
    signal_paths: tuple[Path, ...],
    approval_paths: tuple[Path, ...],
    adapter: str | None,
    environment: str | None,
    no_color: bool,
):
    """Show the decision together with the inputs that produced it."""
    color = _use_color(no_color)
    try:
        contract, eval_results, signals, env, decision = _run_evaluation(
            contract_path, eval_paths, baseline_path, signal_paths, approval_paths, adapter, environment
        )
    except ContractValidationError as exc:
        _fail(exc.format(), False, color)
    except (EvalGateError, OSError) as exc:
        _fail(str(exc), False, color)

    click.echo(format_decision(decision, colors=color, timestamps=True, verbose=True))
    click.echo()
    click.echo(f"Environment: {env}")
    click.echo(f"Mode: {'policy' if contract.uses_policy else 'required evals'}")
    click.echo(f"Eval results ({len(eval_results)}):")
    for result in eval_results:
        metrics = ", ".join(f"{name}={value}" for name, value in result.metrics.items())
        click.echo(f"  {result.eval_name} [{result.run_id}]: {metrics or '(no metrics)'}")
    if signals:
        click.echo(f"Signals ({len(signals)}):")
        for signal in signals:
            click.echo(f"  {signal.type}/{signal.name}: {json.dumps(signal.value, default=str)}")
    sys.exit(0 if decision.status == "PASS" else 1)


@main.command()
@click.option(
    "--previous", "-p", "previous_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Previous eval results.",
)
@click.option(
    "--current", "-c", "current_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Current eval results.",
)
@click.option(
    "--contract", "contract_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Contract whose sources config parses CSV/JSONL results.",
)
@click.option("--json", "as_json", is_flag=True, help="Output the diff as JSON.")
@_no_color
def diff(
    previous_path: Path,
    current_path: Path,
    contract_path: Path | None,
    as_json: bool,
    no_color: bool,
):
    """Compare eval results between two runs. Exits 1 when anything regressed."""
    color = _use_color(no_color)
    try:
        contract = load_contract(contract_path) if contract_path else None
        result = diff_eval_results(
            load_eval_results([previous_path], contract),
            load_eval_results([current_path], contract),
        )
    except ContractValidationError as exc:
        _fail(exc.format(), as_json, color)
    except (EvalGateError, OSError) as exc:
        _fail(str(exc), as_json, color)

    if as_json:
        click.echo(json.dumps(result.to_wire(), indent=2))
    else:
        click.echo(format_diff_result(result, colors=color))
    sys.exit(1 if result.stats.regressed else 0)


@main.command("contract-diff")
@click.argument("previous_path", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("current_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output the diff as JSON.")
@_no_color
def contract_diff(previous_path: Path, current_path: Path, as_json: bool, no_color: bool):
    """Compare two contracts. Exits 1 when they differ."""
    color = _use_color(no_color)
    try:
        result = diff_contracts(load_contract(previous_path), load_contract(current_path))
    except ContractValidationError as exc:
        _fail(exc.format(), as_json, color)
    except (EvalGateError, OSError) as exc:
        _fail(str(exc), as_json, color)

    if as_json:
        click.echo(json.dumps(result.to_wire(), indent=2))
    else:
        click.echo(click.style("Contract Diff", bold=True) if color else "Contract Diff")
        click.echo()
        click.echo(result.summary)
    sys.exit(0 if result.identical else 1)


def _contract_summary(contract: EvalContract) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "name": contract.name,
        "environment": contract.environment,
        "type": "policy-based" if contract.uses_policy else "eval-based",
    }
    if contract.policy is not None:
        environments = contract.policy.environments or {}
        summary["policyRules"] = len(contract.policy.rules or []) + sum(
            len(env_policy.rules or []) for env_policy in environments.values()
        )
        summary["environments"] = list(environments)
    else:
        required_evals = contract.required_evals or []
        summary["requiredEvals"] = len(required_evals)
        summary["totalRules"] = sum(len(required.rules) for required in required_evals)
    return summary


def _echo_issues(title: str, issues: list[dict[str, str]], fg: str, color: bool) -> None:
    if not issues:
        return
    click.echo(click.style(f"{title}:", fg=fg) if color else f"{title}:")
    for issue in issues:
        location = f' at "{issue["path"]}"' if issue["path"] else ""
        bullet = click.style("•", fg=fg) if color else "•"
        click.echo(f"  {bullet} {issue['message']}{location}")
    click.echo()


@main.command()
@click.argument("contract_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--strict", is_flag=True, help="Treat warnings as errors.")
@click.option("--json", "as_json", is_flag=True, help="Output the result as JSON.")
@_no_color
def validate(contract_path: Path, strict: bool, as_json: bool, no_color: bool):
    """Validate a contract's schema and semantics. Exits 1 when invalid."""
    color = _use_color(no_color)
    strict = strict or _config().strict
    output: dict[str, Any] = {"valid": False, "file": str(contract_path), "errors": [], "warnings": []}

    try:
        contract = load_contract(contract_path)
    except ContractValidationError as exc:
        output["errors"] = [issue.to_dict() for issue in exc.issues]
        contract = None
    except (EvalGateError, OSError) as exc:
        _fail(str(exc), as_json, color)

    if contract is not None:
        report = validate_contract(contract).to_dict()
        errors, warnings = report["errors"], report["warnings"]
        if strict:
            errors, warnings = [*errors, *warnings], []
        output.update(valid=not errors, errors=errors, warnings=warnings)
        if not errors:
            output["contract"] = _contract_summary(contract)

    if as_json:
        click.echo(json.dumps(output, indent=2))
        sys.exit(0 if output["valid"] else 1)

    if output["valid"]:
        click.echo(click.style("✓ Contract is valid", fg="green") if color else "✓ Contract is valid")
        click.echo()
        summary = output["contract"]
        click.echo(f"  Name: {summary['name']}")
        click.echo(f"  Environment: {summary['environment']}")
        click.echo(f"  Type: {summary['type']}")
        if summary["type"] == "policy-based":
            click.echo(f"  Policy Rules: {summary['policyRules']}")
            if summary["environments"]:
                click.echo(f"  Environments: {', '.join(summary['environments'])}")
        else:
            click.echo(f"  Required Evals: {summary['requiredEvals']}")
            click.echo(f"  Total Rules: {summary['totalRules']}")
        click.echo()
    else:
        failed = "✗ Contract validation failed"
        click.echo(click.style(failed, fg="red") if color else failed)
        click.echo()

    _echo_issues("Errors", output["errors"], "red", color)
    _echo_issues("Warnings", output["warnings"], "yellow", color)
    sys.exit(0 if output["valid"] else 1)


def _default_reviewer() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


def _write_human_decision(decision: str, reason: str, by: str | None, output: Path) -> None:
    try:
        human_decision = HumanDecision(decision=decision, by=by or _default_reviewer(), reason=reason)
    except ValidationError as exc:
        click.echo(f"Invalid decision: {summarize_pydantic(exc.errors())}", err=True)
        sys.exit(1)

    output.write_text(json.dumps(human_decision.to_wire(), indent=2) + "\n", encoding="utf-8")
    label = "Approval" if decision == "approved" else "Rejection"
    click.echo(click.style(f"✓ {label} recorded", fg="green"))
    click.echo(f"  By: {human_decision.by}")
    click.echo(f"  Reason: {human_decision.reason}")
    click.echo(f"  Output: {output}")


@main.command()
@click.option("--reason", "-r", default="Approved via CLI", show_default=True, help="Why the release is approved.")
@click.option("--by", type=str, help="Reviewer (defaults to the current user).")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("evalgate-approval.json"),
    show_default=True,
    help="Where to write the approval.",
)
def approve(reason: str, by: str | None, output: Path):
    """Record a human approval for a REQUIRES_APPROVAL decision."""
    _write_human_decision("approved", reason, by, output)


@main.command()
@click.option("--reason", "-r", default="Rejected via CLI", show_default=True, help="Why the release is rejected.")
@click.option("--by", type=str, help="Reviewer (defaults to the current user).")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("evalgate-rejection.json"),
    show_default=True,
    help="Where to write the rejection.",
)
def reject(reason: str, by: str | None, output: Path):
    """Record a human rejection."""
    _write_human_decision("rejected", reason, by, output)


if __name__ == "__main__":
    main()
