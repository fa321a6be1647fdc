"""
Verification contract for fixloop.

Runs the external check a repair run is trying to satisfy and normalizes
its result into a VerificationOutcome. Exit code 0 means passed and any
other code means failed. Timeouts and launch errors are reported as failed
outcomes, never raised.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from fixloop.errors import ProbeError
from fixloop.models import VerificationOutcome
from fixloop.utils.fs import FileSystemError, remove_file, safe_write

if TYPE_CHECKING:
    from fixloop.config import FixLoopConfig
    from fixloop.logger import FixLoopLogger

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"

PYTHON_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "pytest.ini")
NODE_MARKERS = ("package.json",)


@dataclass
class VerificationCheck:
    """
    Definition of the external check for one run.

    Either `command` (a shell-style string or an argv list) or `script`
    (an inline script body written to .fixloop/checks/ by the probe).
    """
    command: Union[str, list[str]] = ""
    script: Optional[str] = None
    interpreter: Optional[str] = None
    script_suffix: str = ".py"
    argv: list[str] = field(default_factory=list)
    script_path: Optional[Path] = None

    @property
    def prepared(self) -> bool:
        """True once the probe has resolved argv."""
        return bool(self.argv)

    @property
    def display(self) -> str:
        """Human readable form of the check."""
        if self.argv:
            return shlex.join(self.argv)
        if isinstance(self.command, list):
            return shlex.join(self.command)
        return self.command or "<inline script>"


class VerificationRunner:
    """
    Prepares, runs and cleans up verification checks.

    Stateless between runs apart from the counter used to name
    materialized scripts.
    """

    def __init__(
        self,
        config: FixLoopConfig,
        logger: Optional[FixLoopLogger] = None,
    ) -> None:
        self.config = config
        self._logger = logger
        self._script_counter = 0

    def _log(self, event_type: str, data: Optional[dict] = None, level: str = "info") -> None:
        """Log an event if logger is configured."""
        if self._logger:
            log_data = {"component": "verification"}
            if data:
                log_data.update(data)
            self._logger.log(event_type, log_data, level=level)

    def _next_script_name(self) -> str:
        self._script_counter += 1
        return f"verify_{int(time.time() * 1000)}_{self._script_counter}"

    def prepare(self, check: VerificationCheck) -> VerificationCheck:
        """
        Validate the check and materialize inline scripts.

        Args:
            check: Check definition supplied by the caller.

        Returns:
            A prepared copy of the check with argv resolved.

        Raises:
            ProbeError: If the check is empty, malformed or not runnable.
        """
        cwd = self.config.working_directory
        if not cwd.is_dir():
            raise ProbeError(f"Working directory does not exist: {cwd}")

        if check.script is not None:
            if not check.script.strip():
                raise ProbeError("Inline verification script is empty")
            script_path = self.config.checks_path / f"{self._next_script_name()}{check.script_suffix}"
            try:
                safe_write(script_path, check.script)
            except FileSystemError as e:
                raise ProbeError(f"Could not write verification script: {e}")
            interpreter = check.interpreter or sys.executable
            argv = [*shlex.split(interpreter), str(script_path)]
            self._log("check_materialized", {"path": str(script_path)})
            prepared = replace(check, argv=argv, script_path=script_path)
        else:
            if isinstance(check.command, list):
                argv = [str(part) for part in check.command]
            else:
                try:
                    argv = shlex.split(check.command)
                except ValueError as e:
                    raise ProbeError(f"Malformed verification command: {e}", command=check.command)
            prepared = replace(check, argv=argv)

        if not prepared.argv:
            raise ProbeError("Verification command is empty", command=prepared.display)

        executable = prepared.argv[0]
        if shutil.which(executable) is None and not (cwd / executable).exists():
            raise ProbeError(
                f"Verification command not found: {executable}",
                command=prepared.display,
            )

        self._log("check_prepared", {"command": prepared.display})
        return prepared

    def run(self, check: VerificationCheck, timeout_ms: Optional[int] = None) -> VerificationOutcome:
        """
        Run the check once.

        Args:
            check: A prepared check.
            timeout_ms: Timeout in milliseconds. Defaults to the configured one.

        Returns:
            VerificationOutcome describing the run.
        """
        if not check.prepared:
            try:
                check = self.prepare(check)
            except ProbeError as e:
                return VerificationOutcome(passed=False, output="", diagnostic=str(e), duration_ms=0)

        timeout_ms = timeout_ms or self.config.loop.verification_timeout_ms
        start = time.monotonic()

        try:
            result = subprocess.run(
                check.argv,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000,
                cwd=self.config.working_directory,
            )
        except subprocess.TimeoutExpired as e:
            stdout = _to_text(e.stdout)
            stderr = _to_text(e.stderr)
            diagnostic = _extract_diagnostic(stdout, stderr, fallback="")
            if not diagnostic:
                diagnostic = f"Verification timed out after {timeout_ms} ms"
            self._log("check_timeout", {"command": check.display, "timeout_ms": timeout_ms}, level="warn")
            return VerificationOutcome(
                passed=False,
                output=_combine(stdout, stderr),
                diagnostic=diagnostic,
                duration_ms=_elapsed_ms(start),
                timed_out=True,
            )
        except OSError as e:
            logger.warning("Failed to launch verification %s: %s", check.display, e)
            self._log("check_launch_error", {"command": check.display, "error": str(e)}, level="error")
            return VerificationOutcome(
                passed=False,
                output="",
                diagnostic=f"Failed to run verification: {e}",
                duration_ms=_elapsed_ms(start),
            )

        passed = result.returncode == 0
        outcome = VerificationOutcome(
            passed=passed,
            output=_combine(result.stdout, result.stderr),
            diagnostic="" if passed else _extract_diagnostic(result.stdout, result.stderr),
            duration_ms=_elapsed_ms(start),
            exit_code=result.returncode,
        )
        self._log(
            "check_complete",
            {"passed": passed, "exit_code": result.returncode, "duration_ms": outcome.duration_ms},
        )
        return outcome

    def cleanup(self, check: VerificationCheck) -> bool:
        """
        Remove a materialized script.

        Returns:
            True if a file was removed.
        """
        if check.script_path is None:
            return False
        try:
            removed = remove_file(check.script_path)
        except FileSystemError as e:
            logger.warning("Could not remove verification script: %s", e)
            return False
        if removed:
            self._log("check_cleaned", {"path": str(check.script_path)})
        return removed


def _to_text(value: Union[str, bytes, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _combine(stdout: str, stderr: str) -> str:
    output = stdout or ""
    if stderr:
        output = f"{output}\n{stderr}" if output else stderr
    return output


def _extract_diagnostic(stdout: str, stderr: str, fallback: str = UNKNOWN_ERROR) -> str:
    """Diagnostic text is stderr, else stdout, else the fallback."""
    if stderr and stderr.strip():
        return stderr.strip()
    if stdout and stdout.strip():
        return stdout.strip()
    return fallback


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _has_marker(root: Path, markers: tuple[str, ...]) -> bool:
    return any((root / marker).exists() for marker in markers)


def infer_check_command(request: str, root: Union[str, Path]) -> Optional[str]:
    """
    Choose a default verification command from project markers.

    Args:
        request: The repair request.
        root: Project root to inspect.

    Returns:
        A command string, or None when nothing fits.
    """
    root = Path(root)
    lower = request.lower()
    is_python = _has_marker(root, PYTHON_MARKERS)
    is_node = _has_marker(root, NODE_MARKERS)
    has_typescript = (root / "tsconfig.json").exists()

    if has_typescript and ("typescript" in lower or "type" in lower):
        return "npx tsc --noEmit"
    if "lint" in lower or "format" in lower:
        if is_python:
            return "ruff check ."
        if is_node:
            return "npx eslint ."
    if ("build" in lower or "compile" in lower) and is_node:
        return "npx tsc" if has_typescript else "npm run build"
    if is_python:
        return "pytest -q"
    if is_node:
        return "npm test"
    return None
