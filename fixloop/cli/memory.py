"""Execution memory management commands.

Commands for viewing, listing and pruning execution memory entries.
This module should NOT import heavy modules at the top level - use lazy imports inside functions.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from fixloop.cli.common import get_config_or_default, get_console

if TYPE_CHECKING:
    from fixloop.memory.store import ExecutionMemoryStore

# Create memory command group
memory_app = typer.Typer(
    name="memory",
    help="Execution memory management commands",
    no_args_is_help=True,
)

console = get_console()


def _load_store() -> ExecutionMemoryStore:
    """Load the configured store, exiting with an error message on failure."""
    from fixloop.config import ConfigError
    from fixloop.errors import MemoryStoreError
    from fixloop.memory.store import ExecutionMemoryStore

    try:
        return ExecutionMemoryStore.from_config(get_config_or_default())
    except (ConfigError, MemoryStoreError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@memory_app.command("stats")
def stats_command() -> None:
    """
    Show execution memory statistics.

    Example:
        fixloop memory stats
    """
    store = _load_store()
    stats = store.get_stats()

    strategies = stats["most_common_strategies"]
    info_lines = [
        f"[bold]Total Executions:[/bold] {stats['total_executions']}",
        f"[bold]Successful:[/bold] {stats['successful_executions']}/{stats['total_executions']}",
        f"[bold]Success Rate:[/bold] {stats['success_rate'] * 100:.1f}%",
        f"[bold]Average Iterations:[/bold] {stats['average_iterations']:.1f}",
        f"[bold]Most Used Strategies:[/bold] {', '.join(strategies) if strategies else '-'}",
    ]

    console.print(
        Panel(
            "\n".join(info_lines),
            title="Execution Memory Statistics",
            border_style="cyan",
        )
    )


@memory_app.command("list")
def list_command(
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of entries to show",
    ),
    succeeded: Optional[bool] = typer.Option(
        None,
        "--succeeded/--failed",
        help="Only show successful or failed runs",
    ),
) -> None:
    """
    List execution memory entries, newest first.

    Example:
        fixloop memory list
        fixloop memory list --succeeded --limit 5
    """
    from fixloop.cli.display import format_outcome, format_timestamp

    store = _load_store()
    entries = store.list_entries(limit=limit, succeeded=succeeded)

    if not entries:
        console.print(
            Panel(
                "[dim]No execution memory entries found.[/dim]",
                title="Execution Memory",
                border_style="dim",
            )
        )
        return

    table = Table(title="Execution Memory")
    table.add_column("ID", style="dim", max_width=40)
    table.add_column("Request", max_width=50)
    table.add_column("Outcome")
    table.add_column("Iterations", justify="right")
    table.add_column("Created", style="dim")

    for entry in entries:
        table.add_row(
            entry.id,
            entry.original_request,
            format_outcome(entry.succeeded),
            str(entry.total_iterations),
            format_timestamp(entry.timestamp),
        )

    console.print(table)
    console.print(f"\n[dim]Showing {len(entries)} of {len(store)} entries[/dim]")


@memory_app.command("show")
def show_command(
    entry_id: str = typer.Argument(..., help="Run ID of the entry to show"),
) -> None:
    """
    Show one execution memory entry with its attempts.

    Example:
        fixloop memory show run-fix-the-failing-20260101120000-ab12cd
    """
    from fixloop.cli.display import render_entry

    store = _load_store()
    entry = store.get_entry(entry_id)
    if entry is None:
        console.print(f"[red]Error: Entry not found: {entry_id}[/red]")
        raise typer.Exit(1)

    console.print(render_entry(entry))


@memory_app.command("prune")
def prune_command(
    keep: int = typer.Option(
        100,
        "--keep",
        "-k",
        min=0,
        help="Number of newest entries to keep",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation prompt",
    ),
) -> None:
    """
    Keep only the newest entries.

    Example:
        fixloop memory prune --keep 50
        fixloop memory prune --keep 10 --force
    """
    from fixloop.errors import MemoryStoreError

    store = _load_store()
    to_remove = max(len(store) - keep, 0)

    if to_remove == 0:
        console.print(f"[green]Nothing to prune.[/green] {len(store)} entries stored.")
        return

    if not force:
        confirmed = typer.confirm(f"Remove {to_remove} oldest entries?")
        if not confirmed:
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)

    removed = store.prune_memory(keep)
    try:
        store.save()
    except MemoryStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Pruned {removed} entries.[/green] {len(store)} remaining.")
