"""Display helpers and formatters for the CLI.

Contains Rich formatting utilities for run reports, classifications and
memory entries. This module should NOT import from the command modules to
avoid circular imports.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fixloop.models import ComplexityTier, ErrorCategory

if TYPE_CHECKING:
    from fixloop.memory.store import ExecutionMemoryEntry
    from fixloop.models import ProblemClassification, RunReport

# Tier display names and colors
TIER_DISPLAY: dict[ComplexityTier, tuple[str, str]] = {
    ComplexityTier.SIMPLE: ("Simple", "green"),
    ComplexityTier.MODERATE: ("Moderate", "yellow"),
    ComplexityTier.COMPLEX: ("Complex", "red"),
    ComplexityTier.MULTI_STRATEGY: ("Multi-strategy", "magenta bold"),
}

# Category colors
CATEGORY_STYLE: dict[ErrorCategory, str] = {
    ErrorCategory.SYNTAX: "red",
    ErrorCategory.TYPE: "magenta",
    ErrorCategory.DEPENDENCY: "blue",
    ErrorCategory.LOGIC: "yellow",
    ErrorCategory.TEST: "cyan",
    ErrorCategory.BUILD: "red bold",
    ErrorCategory.LINT: "dim",
    ErrorCategory.RUNTIME: "yellow bold",
    ErrorCategory.OTHER: "white",
}


def format_tier(tier: Optional[ComplexityTier]) -> Text:
    """Format a complexity tier with color."""
    if tier is None:
        return Text("-", style="dim")
    name, style = TIER_DISPLAY.get(tier, (tier.value, "white"))
    return Text(name, style=style)


def format_category(category: ErrorCategory) -> Text:
    """Format an error category with color."""
    return Text(category.value, style=CATEGORY_STYLE.get(category, "white"))


def format_outcome(succeeded: bool) -> Text:
    """Format a pass/fail outcome."""
    if succeeded:
        return Text("Succeeded", style="green bold")
    return Text("Failed", style="red bold")


def format_duration(elapsed_ms: int) -> str:
    """Format milliseconds for display."""
    if elapsed_ms < 1000:
        return f"{elapsed_ms}ms"
    seconds = elapsed_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m {rest}s"


def format_timestamp(timestamp: str) -> str:
    """Shorten an ISO timestamp for tables."""
    return timestamp[:19].replace("T", " ") if timestamp else "-"


def render_report(report: RunReport) -> Panel:
    """Render a RunReport as a panel with an iteration table."""
    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Strategy", style="cyan")
    table.add_column("Change")
    table.add_column("Files", style="dim")
    table.add_column("Check", width=6)

    for record in report.iterations:
        check = Text("pass", style="green") if record.succeeded else Text("fail", style="red")
        table.add_row(
            str(record.index),
            record.strategy_id,
            record.error or record.suggestion_description or "-",
            ", ".join(record.files_touched) or "-",
            check,
        )

    summary = Text.assemble(
        format_outcome(report.succeeded),
        f"  iterations {report.iterations_used}/{report.max_iterations}  tier ",
        format_tier(report.tier),
        f"  elapsed {format_duration(report.elapsed_ms)}",
    )

    parts = [summary]
    if report.strategy_chain:
        parts.append(Text(f"Strategies: {' -> '.join(report.strategy_chain)}", style="cyan"))
    if report.modified_files:
        parts.append(Text(f"Modified: {', '.join(report.modified_files)}", style="dim"))
    if report.failure_error:
        parts.append(Text(report.failure_error, style="red"))

    body = Group(*parts, table) if report.iterations else Group(*parts)
    return Panel(
        body,
        title=f"Run {report.run_id}",
        border_style="green" if report.succeeded else "red",
    )


def render_classification(
    classification: ProblemClassification,
    tier: Optional[ComplexityTier] = None,
) -> Panel:
    """Render a classification result."""
    lines = Text()
    lines.append("Primary: ", style="bold")
    lines.append_text(format_category(classification.primary_category))
    if classification.secondary_categories:
        lines.append("\nSecondary: ", style="bold")
        lines.append(", ".join(c.value for c in classification.secondary_categories))
    if classification.domains:
        lines.append("\nDomains: ", style="bold")
        lines.append(", ".join(classification.domains))
    lines.append("\nCandidates: ", style="bold")
    lines.append(" -> ".join(classification.candidate_strategies), style="cyan")
    lines.append("\nConfidence: ", style="bold")
    lines.append(f"{classification.confidence:.0%}")
    if tier is not None:
        lines.append("\nTier: ", style="bold")
        lines.append_text(format_tier(tier))
    lines.append(f"\n\n{classification.rationale}", style="dim")
    return Panel(lines, title="Classification", border_style="cyan")


def render_entry(entry: ExecutionMemoryEntry) -> Panel:
    """Render one execution memory entry with its attempts."""
    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("Iter", style="dim", width=4)
    table.add_column("Strategy", style="cyan")
    table.add_column("Approach")
    table.add_column("Outcome")

    outcome_style = {"success": "green", "partial": "yellow", "failure": "red"}
    for attempt in entry.attempts:
        table.add_row(
            str(attempt.iteration),
            attempt.strategy_id,
            attempt.approach,
            Text(attempt.outcome.value, style=outcome_style.get(attempt.outcome.value, "white")),
        )

    header = Text.assemble(
        ("Request: ", "bold"), entry.original_request, "\n",
        ("Outcome: ", "bold"), format_outcome(entry.succeeded), "\n",
        ("Iterations: ", "bold"), str(entry.total_iterations), "\n",
        ("Created: ", "bold"), format_timestamp(entry.timestamp),
    )
    if entry.applied_edits:
        header.append("\nEdited: ", style="bold")
        header.append(", ".join(sorted({e.file for e in entry.applied_edits})))

    return Panel(Group(header, table), title=f"Memory {entry.id}", border_style="cyan")
