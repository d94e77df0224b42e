"""Human-friendly output formatter - converts plans, reports and graphs to readable text."""

import os
from typing import List, Optional
from ..contracts.plan import ActionPhase, ActionVerb, Plan
from ..contracts.execution import ApplyStatus, ExecutionOutcome, ExecutionReport
from ..graph.dependency_graph import DependencyGraph
from ..state.models import StateEntry


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("STACKFORGE_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = 65, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "h": "-", "v": "|"} if ascii_mode else {"tl": "┌", "tr": "┐", "h": "─", "v": "│"}
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        ("+" if ascii_mode else "└") + h + ("+" if ascii_mode else "┘"),
        "",
    ]


def _section(title: str, width: int = 65) -> List[str]:
    """Return section divider."""
    h = "-" * width
    return [h, title.center(width), h]


def _format_tree_item(prefix: str, label: str, value: str) -> str:
    return f"   {prefix} {label}: {value}"


def _verb_marker(verb: str, replacement: bool, ascii_mode: bool) -> str:
    if replacement:
        return "-/+" if ascii_mode else "±"
    return {
        ActionVerb.CREATE.value: "+",
        ActionVerb.UPDATE.value: "~",
        ActionVerb.DESTROY.value: "-",
        ActionVerb.NO_OP.value: "=",
    }.get(verb, "?")


def _outcome_marker(outcome: str, ascii_mode: bool) -> str:
    if ascii_mode:
        return {
            ExecutionOutcome.SUCCEEDED.value: "[OK]",
            ExecutionOutcome.FAILED.value: "[FAIL]",
            ExecutionOutcome.SKIPPED.value: "[SKIP]",
            ExecutionOutcome.NOT_STARTED.value: "[--]",
        }.get(outcome, "[?]")
    return {
        ExecutionOutcome.SUCCEEDED.value: "✅",
        ExecutionOutcome.FAILED.value: "❌",
        ExecutionOutcome.SKIPPED.value: "⏭️ ",
        ExecutionOutcome.NOT_STARTED.value: "⏸️ ",
    }.get(outcome, "?")


def format_plan(plan: Plan, ascii_mode: Optional[bool] = None, show_unchanged: bool = False) -> str:
    """
    Render a plan as layered, human-readable text.

    No-op actions are counted but only listed when show_unchanged is set.
    """
    ascii_mode = _use_ascii(ascii_mode)
    branch, last = ("|-", "\\-") if ascii_mode else ("├─", "└─")
    lines = _box("STACKFORGE PLAN", ascii_mode=ascii_mode)

    if not plan.actions:
        lines.append("Nothing declared and nothing recorded in state.")
        return "\n".join(lines)

    for number, layer in enumerate(plan.layers(), 1):
        visible = [a for a in layer if show_unchanged or a.verb != ActionVerb.NO_OP.value]
        if not visible:
            continue
        phase = ActionPhase.APPLY if any(a.phase == ActionPhase.APPLY for a in layer) else ActionPhase.DESTROY
        lines.extend(_section(f"LAYER {number} ({phase.value})"))
        for action in visible:
            marker = _verb_marker(action.verb, action.replacement, ascii_mode)
            lines.append(f" {marker} {action.ref.key}  [{action.display_verb}]")
            details = [("Reason", action.reason)]
            if action.changed_fields:
                details.append(("Changed", ", ".join(action.changed_fields)))
            for index, (label, value) in enumerate(details):
                prefix = last if index == len(details) - 1 else branch
                lines.append(_format_tree_item(prefix, label, value))
        lines.append("")

    counts = plan.summary()
    lines.extend(_section("SUMMARY"))
    lines.append(
        f"Plan: {counts['create']} to create, {counts['update']} to update, "
        f"{counts['replace']} to replace, {counts['destroy']} to destroy, "
        f"{counts['no-op']} unchanged."
    )
    if not plan.has_changes:
        lines.append("No changes. Remote state matches the declaration.")
    return "\n".join(lines)


def format_report(report: ExecutionReport, ascii_mode: Optional[bool] = None) -> str:
    """Render an execution report: one line per action, then the terminal status."""
    ascii_mode = _use_ascii(ascii_mode)
    last = "\\-" if ascii_mode else "└─"
    lines = _box("STACKFORGE APPLY", ascii_mode=ascii_mode)

    for result in report.results:
        verb = f"{ActionVerb.REPLACE.value} ({result.verb})" if result.replacement else result.verb
        suffix = f" -> {result.remote_id}" if result.remote_id else ""
        if result.previous_remote_id:
            suffix += f" (re-created, was {result.previous_remote_id})"
        lines.append(f" {_outcome_marker(result.outcome, ascii_mode)} {result.ref.key}  [{verb}] {result.outcome}{suffix}")
        if result.error:
            lines.append(_format_tree_item(last, "Error", result.error))

    counts = report.summary()
    lines.append("")
    lines.extend(_section("RESULT"))
    lines.append(
        f"{counts['succeeded']} succeeded, {counts['failed']} failed, "
        f"{counts[ExecutionOutcome.SKIPPED.value]} skipped, {counts['not-started']} not started"
    )
    if report.cancelled:
        lines.append("Cancelled before the plan finished.")
    lines.append(f"Status: {_status_label(report.status)}")
    return "\n".join(lines)


def _status_label(status: str) -> str:
    return {
        ApplyStatus.FULLY_APPLIED.value: "FULLY APPLIED",
        ApplyStatus.PARTIALLY_APPLIED.value: "PARTIALLY APPLIED",
        ApplyStatus.FAILED_NO_CHANGES.value: "FAILED (no changes applied)",
    }.get(status, status)


def format_graph(graph: DependencyGraph, ascii_mode: Optional[bool] = None) -> str:
    """Render the dependency graph as parallelizable layers with each resource's dependencies."""
    ascii_mode = _use_ascii(ascii_mode)
    last = "\\-" if ascii_mode else "└─"
    lines = _box("DEPENDENCY GRAPH", ascii_mode=ascii_mode)

    for number, layer in enumerate(graph.parallelizable_layers(), 1):
        lines.extend(_section(f"LAYER {number}"))
        for ref in layer:
            lines.append(f" {ref.key}")
            dependencies = graph.dependencies_of(ref)
            if dependencies:
                lines.append(_format_tree_item(last, "Depends on", ", ".join(d.key for d in dependencies)))
        lines.append("")
    return "\n".join(lines).rstrip("\n")


def format_state(entries: List[StateEntry]) -> str:
    """One line per state entry, sorted by ref key."""
    if not entries:
        return "State is empty."
    rows = sorted(entries, key=lambda entry: entry.ref.key)
    width = max(len(entry.ref.key) for entry in rows)
    return "\n".join(
        f"{entry.ref.key:<{width}}  {entry.remote_id}  {entry.last_applied_at.isoformat()}"
        for entry in rows
    )
