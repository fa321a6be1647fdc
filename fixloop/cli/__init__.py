"""CLI package for fixloop.

Modules:
    app.py      - Main Typer app, version callback, command registration
    run.py      - Repair commands (run, classify, strategies)
    memory.py   - Execution memory commands (stats, list, show, prune)
    display.py  - Rich formatting utilities (render_report, format_tier, etc.)
    common.py   - Shared helpers (get_console, set_project_dir, get_config_or_default)

Usage:
    from fixloop.cli import app, cli_main  # Main exports
"""
from fixloop.cli.app import app, cli_main

__all__ = ["app", "cli_main"]
