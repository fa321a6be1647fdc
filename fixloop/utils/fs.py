"""
File helpers shared by the edit applier, the verification runner and the
memory store.

Writes go through a sibling temp file and ``os.replace`` so a crash never
leaves a half-written source file or memory store behind.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional


class FileSystemError(Exception):
    """A read, write or delete under the project failed."""


def ensure_dir(path: str | Path) -> Path:
    """mkdir -p; returns the directory as a Path."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(f"Failed to create directory {path}: {e}") from e
    return path


def safe_write(path: str | Path, content: str, encoding: str = "utf-8") -> None:
    """
    Replace ``path`` with ``content`` atomically.

    The parent directory is created when missing. On failure the original
    file is untouched and the temp file is removed.

    Raises:
        FileSystemError: If the temp file cannot be written or moved.
    """
    path = Path(path)
    ensure_dir(path.parent)

    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
        os.replace(temp_name, path)
    except OSError as e:
        Path(temp_name).unlink(missing_ok=True)
        raise FileSystemError(f"Failed to write file {path}: {e}") from e


def resolve_repo_path(relative: str | Path, repo_root: Optional[str | Path] = None) -> Path:
    """Absolute paths pass through; relative ones are joined to ``repo_root`` (default cwd)."""
    candidate = Path(relative)
    if candidate.is_absolute():
        return candidate
    base = Path(repo_root) if repo_root is not None else Path.cwd()
    return (base / candidate).resolve()


def read_file(path: str | Path, encoding: str = "utf-8") -> str:
    """
    Read a text file.

    Raises:
        FileSystemError: Missing path, a directory, undecodable bytes or an
            OS error. The message names the path.
    """
    path = Path(path)
    if not path.is_file():
        reason = "Not a file" if path.exists() else "File not found"
        raise FileSystemError(f"{reason}: {path}")
    try:
        return path.read_text(encoding=encoding)
    except UnicodeDecodeError as e:
        raise FileSystemError(f"Cannot decode {path} as {encoding}: {e}") from e
    except OSError as e:
        raise FileSystemError(f"Failed to read file {path}: {e}") from e


def remove_file(path: str | Path) -> bool:
    """Delete a regular file. False when nothing was there."""
    path = Path(path)
    if not path.exists():
        return False
    if not path.is_file():
        raise FileSystemError(f"Not a file: {path}")
    try:
        path.unlink()
    except OSError as e:
        raise FileSystemError(f"Failed to remove file {path}: {e}") from e
    return True
