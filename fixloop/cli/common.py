"""Shared CLI state: the Rich console, the --project override and config lookup.

Command modules import from here; this module imports none of them.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console

if TYPE_CHECKING:
    from fixloop.config import FixLoopConfig

CONFIG_FILENAME = "config.yaml"

_project_dir: Optional[str] = None
_console: Optional[Console] = None


def set_project_dir(path: Optional[str]) -> None:
    """Record the --project directory; None clears it."""
    global _project_dir
    _project_dir = path


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_config_or_default() -> "FixLoopConfig":
    """
    Config for the project the CLI is operating on.

    With --project set, the process moves into that directory first so
    verification commands and relative paths resolve against it. A
    config.yaml there is loaded (and may raise ConfigError); without one
    every setting takes its default and the repo root is the directory.
    """
    from fixloop.config import FixLoopConfig, load_config

    if _project_dir:
        os.chdir(_project_dir)

    if Path(CONFIG_FILENAME).is_file():
        return load_config(CONFIG_FILENAME)
    return FixLoopConfig(repo_root=os.getcwd())


def init_fixloop_directory(config: "FixLoopConfig") -> None:
    """Create .fixloop/ with its logs/ and memory/ subdirectories."""
    from fixloop.utils.fs import ensure_dir

    for directory in (config.fixloop_path, config.logs_path, config.memory_path.parent):
        ensure_dir(directory)
