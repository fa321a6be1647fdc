"""
Base class for fixloop repair strategies.

This module provides the contract every strategy implements:
- Strategy abstract class with the bounded per-strategy loop
- StrategyContext bundling what a strategy may look at
- StrategyResult dataclass for standardized return values
- StrategyAttempt records for each suggestion tried
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from fixloop.edits import apply_edits
from fixloop.errors import StrategyError
from fixloop.models import FixSuggestion, IterationRecord, StrategyCapability

if TYPE_CHECKING:
    from fixloop.config import FixLoopConfig
    from fixloop.logger import FixLoopLogger


@dataclass
class StrategyContext:
    """Inputs for one strategy execution."""
    request: str
    diagnostic: str = ""
    codebase_context: str = ""
    iteration: int = 1
    previous_iterations: list[IterationRecord] = field(default_factory=list)
    memory_hint: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def combined_text(self) -> str:
        """Lowercased request and diagnostic for keyword matching."""
        return f"{self.diagnostic}\n{self.request}".lower()


@dataclass
class StrategyAttempt:
    """One suggestion tried inside a strategy's loop."""
    iteration: int
    approach: str
    confidence: float
    score: float
    applied: bool
    # paths actually written; targets are files the suggestion is about
    files: list[str] = field(default_factory=list)
    targets: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "iteration": self.iteration,
            "approach": self.approach,
            "confidence": self.confidence,
            "score": self.score,
            "applied": self.applied,
            "files": list(self.files),
            "targets": list(self.targets),
            "error": self.error,
        }


@dataclass
class StrategyResult:
    """
    Result from a strategy execution.

    success means local success only; the verification check decides
    whether the problem is actually fixed.
    """
    success: bool
    strategy_id: str
    iterations: int = 0
    changes: list[str] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)
    attempts: list[StrategyAttempt] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        """True when at least one suggestion was applied."""
        return any(a.applied for a in self.attempts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "strategy_id": self.strategy_id,
            "iterations": self.iterations,
            "changes": list(self.changes),
            "modified_files": list(self.modified_files),
            "attempts": [a.to_dict() for a in self.attempts],
            "errors": list(self.errors),
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def success_result(
        cls,
        strategy_id: str,
        iterations: int,
        changes: Optional[list[str]] = None,
        modified_files: Optional[list[str]] = None,
        attempts: Optional[list[StrategyAttempt]] = None,
    ) -> StrategyResult:
        """Create a successful result."""
        return cls(
            success=True,
            strategy_id=strategy_id,
            iterations=iterations,
            changes=changes or [],
            modified_files=modified_files or [],
            attempts=attempts or [],
            recommendations=recommendations_for(strategy_id, True),
        )

    @classmethod
    def failure_result(
        cls,
        strategy_id: str,
        error: str,
        iterations: int = 0,
        attempts: Optional[list[StrategyAttempt]] = None,
    ) -> StrategyResult:
        """Create a failed result with a single error."""
        attempts = attempts or []
        changes, modified = collect_changes(attempts)
        return cls(
            success=False,
            strategy_id=strategy_id,
            iterations=iterations,
            changes=changes,
            modified_files=modified,
            attempts=attempts,
            errors=[error],
            recommendations=recommendations_for(strategy_id, False),
        )


def collect_changes(attempts: list[StrategyAttempt]) -> tuple[list[str], list[str]]:
    """Changes and de-duplicated files from the applied attempts."""
    changes = [a.approach for a in attempts if a.applied]
    modified: list[str] = []
    for attempt in attempts:
        if attempt.applied:
            modified.extend(f for f in attempt.files if f not in modified)
    return changes, modified


def recommendations_for(strategy_id: str, success: bool) -> list[str]:
    """Next-step advice attached to every strategy result."""
    if success:
        return [
            "Solution applied successfully",
            "Review changes before committing",
            "Run verification tests to confirm",
        ]
    return [
        f"Failed to solve with {strategy_id} strategy",
        "Consider routing to a different strategy",
        "Request may require manual intervention",
    ]


def suggestion_score(suggestion: FixSuggestion, iteration: int) -> float:
    """Confidence decayed by 10% per iteration after the first."""
    return suggestion.confidence * (1 - 0.1 * (iteration - 1))


class Strategy(ABC):
    """
    Abstract base class for repair strategies.

    Subclasses describe themselves with capability() and produce
    suggestions with propose_fixes(). apply_fix() is the only call with
    side effects; the default writes a suggestion's edits and treats
    edit-less suggestions as advisory.
    """

    def __init__(
        self,
        config: FixLoopConfig,
        logger: Optional[FixLoopLogger] = None,
        iteration_budget: Optional[int] = None,
    ) -> None:
        """
        Initialize the strategy.

        Args:
            config: Configuration with repo_root and strategy settings.
            logger: Optional logger for recording operations.
            iteration_budget: Overrides the capability's budget when set.
        """
        self.config = config
        self._logger = logger
        self._iteration_budget = iteration_budget
        self._last_error: Optional[str] = None

    @property
    def id(self) -> str:
        return self.capability().id

    def _log(self, event_type: str, data: Optional[dict] = None, level: str = "info") -> None:
        """Log an event if logger is configured."""
        if self._logger:
            log_data = {"strategy": self.id}
            if data:
                log_data.update(data)
            self._logger.log(event_type, log_data, level=level)

    @abstractmethod
    def capability(self) -> StrategyCapability:
        """Static self-description of this strategy."""
        pass

    @abstractmethod
    def propose_fixes(self, context: StrategyContext) -> list[FixSuggestion]:
        """Analyze the context and propose fixes. Must not have side effects."""
        pass

    def apply_fix(self, suggestion: FixSuggestion) -> bool:
        """
        Apply a suggestion.

        Returns:
            True if applied. Never raises for a failed write.
        """
        self._last_error = None
        if suggestion.is_advisory:
            return True
        outcome = apply_edits(suggestion.edits, self.config.repo_root)
        if not outcome.applied:
            self._last_error = outcome.error
        return outcome.applied

    def select_suggestion(
        self,
        suggestions: list[FixSuggestion],
        iteration: int,
        used: set[int],
        memory_hint: Optional[str] = None,
    ) -> Optional[FixSuggestion]:
        """Pick the highest scoring unused suggestion, preferring the memory hint."""
        available = [
            (position, s) for position, s in enumerate(suggestions) if position not in used
        ]
        if not available:
            return None

        hint = memory_hint.strip().lower() if memory_hint else None

        def sort_key(item: tuple[int, FixSuggestion]) -> tuple:
            position, suggestion = item
            matches_hint = hint is not None and suggestion.description.strip().lower() == hint
            return (not matches_hint, -suggestion_score(suggestion, iteration), position)

        position, suggestion = min(available, key=sort_key)
        used.add(position)
        return suggestion

    def execute(self, context: StrategyContext) -> StrategyResult:
        """
        Run the bounded repair loop.

        Proposes once, then applies up to iteration_budget suggestions,
        stopping at the first applied suggestion whose confidence clears
        the success threshold. Errors are returned, never raised.
        """
        strategy_id = self.id
        budget = self._iteration_budget or self.capability().iteration_budget
        threshold = self.config.strategies.success_threshold

        self._log("strategy_start", {"budget": budget, "iteration": context.iteration})

        try:
            suggestions = self.propose_fixes(context)
        except Exception as e:
            self._log("strategy_error", {"error": str(e)}, level="error")
            return StrategyResult.failure_result(strategy_id, f"Analysis failed: {e}")

        if not suggestions:
            self._log("strategy_no_suggestions")
            return StrategyResult.failure_result(strategy_id, "No actionable suggestions found")

        attempts: list[StrategyAttempt] = []
        errors: list[str] = []
        used: set[int] = set()

        for iteration in range(1, budget + 1):
            suggestion = self.select_suggestion(suggestions, iteration, used, context.memory_hint)
            if suggestion is None:
                break

            try:
                applied = self.apply_fix(suggestion)
                error = None if applied else (self._last_error or "Failed to apply fix")
            except StrategyError as e:
                applied = False
                error = str(e)
            except Exception as e:
                applied = False
                error = f"Failed to apply fix: {e}"

            written = [edit.file_path for edit in suggestion.edits]
            attempts.append(StrategyAttempt(
                iteration=iteration,
                approach=suggestion.description,
                confidence=suggestion.confidence,
                score=suggestion_score(suggestion, iteration),
                applied=applied,
                files=written if applied else [],
                targets=list(suggestion.target_files),
                error=error,
            ))
            self._log("strategy_attempt", attempts[-1].to_dict())

            if not applied:
                errors.append(error)
                continue

            if suggestion.confidence > threshold:
                changes, modified = collect_changes(attempts)
                self._log("strategy_success", {"iterations": len(attempts)})
                return StrategyResult.success_result(
                    strategy_id,
                    iterations=len(attempts),
                    changes=changes,
                    modified_files=modified,
                    attempts=attempts,
                )

        result = StrategyResult.failure_result(
            strategy_id,
            "No suggestion reached the success threshold",
            iterations=len(attempts),
            attempts=attempts,
        )
        result.errors.extend(errors)
        return result
