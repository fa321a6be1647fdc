"""
Fix application for fixloop.

Writes CodeEdits to disk. Each edit either replaces a 1-based line,
replaces the first occurrence of a snippet, or (with neither set) writes
the whole file. Writes are atomic per file; there is no rollback across
edits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from fixloop.models import CodeEdit
from fixloop.utils.fs import FileSystemError, read_file, resolve_repo_path, safe_write

logger = logging.getLogger(__name__)


@dataclass
class EditOutcome:
    """Result of applying a batch of edits."""
    applied: bool
    modified_files: list[str] = field(default_factory=list)
    error: Optional[str] = None


def _resolve_inside(file_path: str, repo_root: Path) -> Path:
    target = resolve_repo_path(file_path, repo_root).resolve()
    root = repo_root.resolve()
    if target != root and root not in target.parents:
        raise FileSystemError(f"Refusing to edit outside the project: {file_path}")
    return target


def apply_edit(edit: CodeEdit, repo_root: Union[str, Path]) -> Path:
    """
    Apply a single edit.

    Returns:
        The path that was written.

    Raises:
        FileSystemError: If the target cannot be read, matched or written.
    """
    target = _resolve_inside(edit.file_path, Path(repo_root))

    if edit.line_number is None and not edit.original_code:
        safe_write(target, edit.new_code)
        return target

    content = read_file(target)

    if edit.line_number is not None:
        lines = content.splitlines(keepends=True)
        index = edit.line_number - 1
        if index < 0 or index >= len(lines):
            raise FileSystemError(
                f"Line {edit.line_number} out of range for {edit.file_path} ({len(lines)} lines)"
            )
        ending = "\n" if lines[index].endswith("\n") else ""
        lines[index] = edit.new_code.rstrip("\n") + ending
        safe_write(target, "".join(lines))
        return target

    if edit.original_code not in content:
        raise FileSystemError(f"Original code not found in {edit.file_path}")
    safe_write(target, content.replace(edit.original_code, edit.new_code, 1))
    return target


def apply_edits(edits: Iterable[CodeEdit], repo_root: Union[str, Path]) -> EditOutcome:
    """
    Apply edits in order, stopping at the first failure.

    Edits written before a failure stay on disk.
    """
    modified: list[str] = []
    for edit in edits:
        try:
            apply_edit(edit, repo_root)
        except FileSystemError as e:
            logger.debug("Edit to %s failed: %s", edit.file_path, e)
            return EditOutcome(applied=False, modified_files=modified, error=str(e))
        if edit.file_path not in modified:
            modified.append(edit.file_path)
    return EditOutcome(applied=True, modified_files=modified)
