"""Shared fixtures for fixloop tests."""

from __future__ import annotations

import shlex
import sys
from dataclasses import replace
from typing import Callable, Optional

import pytest

from fixloop.cli.common import set_project_dir
from fixloop.config import FixLoopConfig, clear_config_cache
from fixloop.errors import ProbeError
from fixloop.logger import clear_logger_cache
from fixloop.models import ErrorCategory, FixSuggestion, StrategyCapability, VerificationOutcome
from fixloop.strategies.base import Strategy, StrategyContext
from fixloop.verification import VerificationCheck

FAILING_DIAGNOSTIC = "AssertionError: Expected 'foo' but got 'bar'"


def python_command(code: str) -> str:
    """Shell-style command running `code` with the current interpreter."""
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


class ScriptedStrategy(Strategy):
    """Strategy with fixed suggestions that records how it was called."""

    def __init__(
        self,
        config: FixLoopConfig,
        strategy_id: str = "scripted",
        suggestions: Optional[list[tuple[str, float]]] = None,
        base_confidence: float = 0.5,
        domains: frozenset[str] = frozenset({"*"}),
        categories: frozenset[ErrorCategory] = frozenset(ErrorCategory),
        budget: int = 3,
        edits_for: Optional[Callable[[str], list]] = None,
    ) -> None:
        super().__init__(config)
        self._capability = StrategyCapability(
            id=strategy_id,
            supported_categories=categories,
            supported_domains=domains,
            base_confidence=base_confidence,
            iteration_budget=budget,
        )
        self.suggestions = suggestions if suggestions is not None else [("Do the thing", 0.9)]
        self.edits_for = edits_for
        self.contexts: list[StrategyContext] = []

    def capability(self) -> StrategyCapability:
        return self._capability

    def propose_fixes(self, context: StrategyContext) -> list[FixSuggestion]:
        self.contexts.append(context)
        return [
            FixSuggestion(
                strategy_id=self._capability.id,
                description=description,
                confidence=confidence,
                edits=self.edits_for(description) if self.edits_for else [],
            )
            for description, confidence in self.suggestions
        ]


class RaisingStrategy(ScriptedStrategy):
    """Strategy whose execute() itself raises."""

    def execute(self, context: StrategyContext):
        raise RuntimeError("boom")


class FakeRunner:
    """
    Verification runner double.

    Verification number `pass_at` (1-based, the initial run counts) and
    every later one passes. pass_at=None never passes.
    """

    def __init__(
        self,
        pass_at: Optional[int] = None,
        diagnostic: str = FAILING_DIAGNOSTIC,
        prepare_error: Optional[str] = None,
    ) -> None:
        self.pass_at = pass_at
        self.diagnostic = diagnostic
        self.prepare_error = prepare_error
        self.runs = 0
        self.cleaned: list[VerificationCheck] = []

    def prepare(self, check: VerificationCheck) -> VerificationCheck:
        if self.prepare_error:
            raise ProbeError(self.prepare_error)
        return replace(check, argv=["fake-check"])

    def run(self, check: VerificationCheck, timeout_ms: Optional[int] = None) -> VerificationOutcome:
        self.runs += 1
        passed = self.pass_at is not None and self.runs >= self.pass_at
        return VerificationOutcome(
            passed=passed,
            output="" if passed else self.diagnostic,
            diagnostic="" if passed else self.diagnostic,
            duration_ms=1,
            exit_code=0 if passed else 1,
        )

    def cleanup(self, check: VerificationCheck) -> bool:
        self.cleaned.append(check)
        return False


@pytest.fixture(autouse=True)
def reset_global_state():
    """Clear module caches and the CLI project override between tests."""
    clear_config_cache()
    clear_logger_cache()
    set_project_dir(None)
    yield
    clear_config_cache()
    clear_logger_cache()
    set_project_dir(None)


@pytest.fixture
def config(tmp_path) -> FixLoopConfig:
    """Default configuration rooted at a temporary project."""
    return FixLoopConfig(repo_root=str(tmp_path))


@pytest.fixture
def scripted_strategy():
    """Factory for ScriptedStrategy."""
    return ScriptedStrategy


@pytest.fixture
def raising_strategy():
    """Factory for RaisingStrategy."""
    return RaisingStrategy


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner."""
    return FakeRunner


@pytest.fixture
def py_command():
    """Build a shell-style command for an inline Python snippet."""
    return python_command
