"""Repair commands: run, classify and strategies.

This module should NOT import heavy modules at the top level - use lazy
imports inside functions.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from fixloop.cli.common import get_config_or_default, get_console, init_fixloop_directory

console = get_console()


def run_command(
    request: str = typer.Argument(..., help="What to repair, in plain language"),
    check: Optional[str] = typer.Option(
        None,
        "--check",
        "-c",
        help="Verification command (default: loop.check_command or inferred)",
    ),
    max_iterations: Optional[int] = typer.Option(
        None,
        "--max-iterations",
        "-n",
        min=1,
        help="Override the iteration budget",
    ),
    timeout_ms: Optional[int] = typer.Option(
        None,
        "--timeout-ms",
        min=1,
        help="Timeout for one verification run in milliseconds",
    ),
    no_cleanup: bool = typer.Option(
        False,
        "--no-cleanup",
        help="Keep materialized verification scripts",
    ),
    no_memory: bool = typer.Option(
        False,
        "--no-memory",
        help="Do not read or write execution memory",
    ),
    codebase: str = typer.Option(
        "",
        "--codebase",
        help="Free text describing the codebase (frameworks, libraries)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the run report as JSON",
    ),
) -> None:
    """
    Repair the project until the verification check passes.

    Exits 0 when the check passes and 1 otherwise.

    Example:
        fixloop run "fix the failing unit tests" --check "pytest -q"
    """
    from fixloop.config import ConfigError
    from fixloop.errors import MemoryStoreError
    from fixloop.logger import FixLoopLogger
    from fixloop.protocol import build_protocol
    from fixloop.verification import infer_check_command

    try:
        config = get_config_or_default()
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if timeout_ms:
        config.loop.verification_timeout_ms = timeout_ms
    if no_cleanup:
        config.loop.cleanup_on_completion = False

    command = check or config.loop.check_command or infer_check_command(request, config.repo_root)
    if not command:
        console.print("[red]Error: No verification check given and none could be inferred.[/red]")
        console.print("[dim]Pass one with --check or set loop.check_command in config.yaml[/dim]")
        raise typer.Exit(1)

    init_fixloop_directory(config)
    logger = FixLoopLogger(config=config)

    try:
        protocol = build_protocol(config, use_memory=not no_memory, logger=logger)
    except (ConfigError, MemoryStoreError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not json_output:
        console.print(f"[dim]Check:[/dim] {command}")

    report = protocol.run(
        request,
        command,
        codebase_context=codebase,
        max_iterations=max_iterations,
    )

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        from fixloop.cli.display import render_report

        console.print(render_report(report))
        if not report.succeeded:
            console.print(
                "[yellow]Try a more specific request or a larger budget (--max-iterations).[/yellow]"
            )

    raise typer.Exit(0 if report.succeeded else 1)


def classify_command(
    request: str = typer.Argument(..., help="The repair request"),
    diagnostic: Optional[str] = typer.Option(
        None,
        "--diagnostic",
        "-d",
        help="Diagnostic text from a failing check",
    ),
    diagnostic_file: Optional[Path] = typer.Option(
        None,
        "--diagnostic-file",
        "-f",
        help="Read diagnostic text from a file",
    ),
    codebase: str = typer.Option("", "--codebase", help="Free text describing the codebase"),
) -> None:
    """
    Show how a failure would be classified and routed.

    Example:
        fixloop classify "fix the failing unit tests" -d "AssertionError: expected 1"
    """
    from fixloop.classifier import ProblemClassifier, select_tier
    from fixloop.config import ConfigError
    from fixloop.orchestrator import default_registry

    if diagnostic is not None and diagnostic_file is not None:
        console.print("[red]Error: Use either --diagnostic or --diagnostic-file, not both.[/red]")
        raise typer.Exit(1)

    if diagnostic_file is not None:
        if not diagnostic_file.is_file():
            console.print(f"[red]Error: File not found: {diagnostic_file}[/red]")
            raise typer.Exit(1)
        diagnostic = diagnostic_file.read_text(encoding="utf-8", errors="replace")

    try:
        config = get_config_or_default()
        registry = default_registry(config)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    from fixloop.cli.display import render_classification

    classifier = ProblemClassifier(config.strategies.default_strategy)
    classification = classifier.classify(request, diagnostic or "", registry.capabilities(), codebase)
    console.print(render_classification(classification, select_tier(request, classification)))


def strategies_command() -> None:
    """
    List registered repair strategies.

    Example:
        fixloop strategies
    """
    from fixloop.config import ConfigError
    from fixloop.orchestrator import default_registry

    try:
        registry = default_registry(get_config_or_default())
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Repair Strategies")
    table.add_column("ID", style="cyan")
    table.add_column("Categories")
    table.add_column("Domains", style="green")
    table.add_column("Conf", justify="right")
    table.add_column("Budget", justify="right")
    table.add_column("Status")

    for strategy_id in registry.ids():
        registered = registry.get(strategy_id)
        capability = registered.capability
        status = "[green]ready[/green]" if registered.implemented else "[yellow]planned[/yellow]"
        table.add_row(
            capability.id,
            ", ".join(sorted(c.value for c in capability.supported_categories)),
            ", ".join(sorted(capability.supported_domains)),
            f"{capability.base_confidence:.2f}",
            str(capability.iteration_budget),
            status,
        )

    console.print(table)
