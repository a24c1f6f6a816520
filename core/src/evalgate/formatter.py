"""Human-readable rendering of decisions and eval diffs."""

from __future__ import annotations

import click

from .decision import Decision, Violation
from .eval_diff import EvalDiffResult
from .values import format_delta, format_number, stringify

_STATUS_STYLE = {
    "PASS": ("✓", "PASS", "green"),
    "BLOCK": ("✗", "BLOCK", "red"),
    "REQUIRES_APPROVAL": ("⚠", "REQUIRES APPROVAL", "yellow"),
}

_DIRECTION_STYLE = {
    "improved": ("↑", "green"),
    "regressed": ("↓", "red"),
    "new": ("+", "yellow"),
    "unchanged": ("=", "bright_black"),
}

_LABEL_WIDTH = 12

_NEXT_STEPS = {
    "BLOCK": (
        "Review the violations above",
        "Fix the issues in your code",
        "Re-run evaluations",
        "Commit and push changes",
    ),
    "REQUIRES_APPROVAL": (
        "Review the violations above",
        "Request approval if the changes are intentional",
        "Or fix the issues and re-run evaluations",
    ),
}


def _style(text: str, colors: bool, **styles) -> str:
    return click.style(text, **styles) if colors else text


def _label(label: str, colors: bool) -> str:
    padding = " " * max(1, _LABEL_WIDTH - len(label) - 1)
    return _style(f"{label}:", colors, fg="bright_black") + padding


def _section(title: str, colors: bool) -> str:
    return _style(title, colors, bold=True) if colors else f"--- {title} ---"


def format_violation(violation: Violation, colors: bool = True, index: int | None = None) -> str:
    prefix = f"  {index}. " if index is not None else "  "
    indent = " " * len(prefix)

    eval_name = _style(violation.eval_name, colors, bold=True)
    metric = _style(violation.rule.metric, colors, fg="blue")
    lines = [
        f"{prefix}{eval_name} → {metric}",
        f"{indent}{_style(violation.explanation, colors, fg='yellow')}",
    ]
    if violation.baseline_value is not None:
        lines.append(
            f"{indent}Actual: {stringify(violation.actual_value)} | "
            f"Baseline: {stringify(violation.baseline_value)}"
        )
    if violation.delta is not None:
        sign = "+" if violation.delta > 0 else ""
        lines.append(f"{indent}Delta: {sign}{format_number(violation.delta)}")
    return "\n".join(lines)


def format_decision(
    decision: Decision,
    colors: bool = True,
    timestamps: bool = False,
    verbose: bool = False,
) -> str:
    icon, text, color = _STATUS_STYLE[decision.status]
    lines = [
        f"{_style(icon, colors, fg=color)} {_style(text, colors, fg=color, bold=True)}",
        "",
        _label("Contract", colors) + decision.contract_name,
        _label("Version", colors) + str(decision.contract_version),
    ]
    if timestamps:
        lines.append(_label("Evaluated", colors) + decision.evaluated_at)
    lines.extend(["", decision.summary])

    if decision.status != "PASS" and decision.violations:
        lines.extend(["", _section("Violations", colors), ""])
        for index, violation in enumerate(decision.violations, start=1):
            lines.append(format_violation(violation, colors=colors, index=index))
            lines.append("")

        if verbose:
            lines.extend([_section("Next Steps", colors), ""])
            for step_number, step in enumerate(_NEXT_STEPS[decision.status], start=1):
                lines.append(f"  {step_number}. {step}")

    return "\n".join(lines)


def format_diff_result(result: EvalDiffResult, colors: bool = True) -> str:
    lines = [_style("Eval Results Diff", colors, bold=True), "", result.summary, ""]

    for eval_diff in result.diffs:
        lines.append(_style(eval_diff.eval_name, colors, bold=True))
        for metric_diff in eval_diff.metrics:
            symbol, color = _DIRECTION_STYLE[metric_diff.direction]
            before = "N/A" if metric_diff.previous is None else stringify(metric_diff.previous)
            after = "N/A" if metric_diff.current is None else stringify(metric_diff.current)
            delta = "" if metric_diff.delta is None else f" ({format_delta(metric_diff.delta)})"
            lines.append(
                f"  {_style(symbol, colors, fg=color)} {metric_diff.metric}: {before} → {after}{delta}"
            )
        lines.append("")

    return "\n".join(lines)
