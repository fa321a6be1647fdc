"""Root Typer application for the ``fixloop`` command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from fixloop import __version__
from fixloop.cli.common import get_console, set_project_dir
from fixloop.cli.memory import memory_app
from fixloop.cli.run import classify_command, run_command, strategies_command

app = typer.Typer(
    name="fixloop",
    help="Run a verification check, classify the failure, apply a fix, repeat.",
    add_completion=False,
)

console = get_console()


def _print_version(value: bool) -> None:
    if value:
        console.print(f"fixloop version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    project: Optional[Path] = typer.Option(
        None,
        "--project",
        "-p",
        help="Operate on this project directory instead of the current one",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Print the version and exit",
        callback=_print_version,
        is_eager=True,
    ),
) -> None:
    """fixloop: iterate fixes until the project's check passes."""
    if project is not None:
        if not project.is_dir():
            console.print(f"[red]Error: Project directory not found: {project}[/red]")
            raise typer.Exit(1)
        set_project_dir(str(project.resolve()))

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


COMMANDS = {
    "run": run_command,
    "classify": classify_command,
    "strategies": strategies_command,
}

for _name, _command in COMMANDS.items():
    app.command(_name)(_command)

app.add_typer(memory_app, name="memory")


def cli_main() -> None:
    app()


__all__ = ["app", "cli_main"]
