"""
Strategy that runs an external fixer command.

Configured under strategies.command_fixers in config.yaml, e.g.
`ruff check --fix .` for lint failures.
"""

from __future__ import annotations

import shlex
import subprocess
from typing import TYPE_CHECKING, Optional

from fixloop.errors import StrategyError
from fixloop.models import ErrorCategory, FixSuggestion, FixType, StrategyCapability
from fixloop.strategies.base import Strategy, StrategyContext

if TYPE_CHECKING:
    from fixloop.config import CommandFixerConfig, FixLoopConfig
    from fixloop.logger import FixLoopLogger


class CommandStrategy(Strategy):
    """Runs one fixer command; the exit code decides whether it applied."""

    def __init__(
        self,
        config: FixLoopConfig,
        fixer: CommandFixerConfig,
        logger: Optional[FixLoopLogger] = None,
    ) -> None:
        super().__init__(config, logger)
        self.fixer = fixer
        self._capability = StrategyCapability(
            id=fixer.id,
            supported_categories=frozenset(ErrorCategory(c) for c in fixer.categories),
            supported_domains=frozenset({"*"}),
            base_confidence=fixer.base_confidence,
            iteration_budget=1,
            description=f"Runs `{fixer.command}`",
        )

    def capability(self) -> StrategyCapability:
        return self._capability

    def propose_fixes(self, context: StrategyContext) -> list[FixSuggestion]:
        return [
            FixSuggestion(
                strategy_id=self.fixer.id,
                description=f"Run {self.fixer.command}",
                confidence=self.fixer.base_confidence,
                fix_type=FixType.RUN_COMMAND,
            )
        ]

    def apply_fix(self, suggestion: FixSuggestion) -> bool:
        """
        Run the fixer command.

        Raises:
            StrategyError: The command could not be started or timed out.
        """
        self._last_error = None
        try:
            result = subprocess.run(
                shlex.split(self.fixer.command),
                capture_output=True,
                text=True,
                timeout=self.fixer.timeout_seconds,
                cwd=self.config.working_directory,
            )
        except subprocess.TimeoutExpired as e:
            raise StrategyError(
                f"{self.fixer.command} timed out after {self.fixer.timeout_seconds}s", self.fixer.id
            ) from e
        except (OSError, ValueError) as e:
            raise StrategyError(f"Could not run {self.fixer.command}: {e}", self.fixer.id) from e

        self._log("fixer_complete", {"command": self.fixer.command, "exit_code": result.returncode})
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            self._last_error = f"{self.fixer.command} exited with {result.returncode}: {output[:500]}"
            return False
        return True
