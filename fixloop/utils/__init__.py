"""Utility modules for fixloop."""

from fixloop.utils.fs import (
    FileSystemError,
    ensure_dir,
    read_file,
    remove_file,
    resolve_repo_path,
    safe_write,
)

__all__ = [
    "FileSystemError",
    "ensure_dir",
    "read_file",
    "remove_file",
    "resolve_repo_path",
    "safe_write",
]
