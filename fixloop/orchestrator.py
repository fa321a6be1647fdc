"""
Multi-strategy orchestration for fixloop.

The orchestrator classifies a failure once, consults execution memory,
then tries the candidate strategies in order until one reports local
success. Strategies are looked up in an explicit StrategyRegistry passed
in at construction, so independent orchestrations never share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional

from fixloop.classifier import ProblemClassifier
from fixloop.config import ConfigError
from fixloop.models import ErrorCategory, ProblemClassification, StrategyCapability
from fixloop.strategies import (
    CommandStrategy,
    DataAnalysisStrategy,
    GeneralStrategy,
    Strategy,
    StrategyContext,
    StrategyResult,
    TestingStrategy,
    UIRefactoringStrategy,
    WebDevelopmentStrategy,
)

if TYPE_CHECKING:
    from fixloop.config import FixLoopConfig
    from fixloop.logger import FixLoopLogger
    from fixloop.memory.store import ExecutionMemoryStore


# Specialties without an implementation yet. Registered so the classifier
# can route to them; the orchestrator skips them as configuration gaps.
PLANNED_CAPABILITIES: tuple[StrategyCapability, ...] = (
    StrategyCapability(
        id="architecture",
        supported_categories=frozenset({ErrorCategory.LOGIC, ErrorCategory.BUILD, ErrorCategory.OTHER}),
        supported_domains=frozenset({"architecture"}),
        base_confidence=0.7,
        iteration_budget=8,
        description="Structural refactoring across modules",
    ),
    StrategyCapability(
        id="performance",
        supported_categories=frozenset({ErrorCategory.OTHER, ErrorCategory.LOGIC}),
        supported_domains=frozenset({"performance"}),
        base_confidence=0.7,
        iteration_budget=6,
        description="Performance and resource usage fixes",
    ),
    StrategyCapability(
        id="security",
        supported_categories=frozenset({ErrorCategory.LOGIC, ErrorCategory.RUNTIME, ErrorCategory.DEPENDENCY}),
        supported_domains=frozenset({"security"}),
        base_confidence=0.8,
        iteration_budget=6,
        description="Vulnerability and hardening fixes",
    ),
)


@dataclass
class RegisteredStrategy:
    """A capability and, when implemented, the strategy behind it."""
    capability: StrategyCapability
    implementation: Optional[Strategy] = None

    @property
    def implemented(self) -> bool:
        return self.implementation is not None


class StrategyRegistry:
    """
    Explicit capability table.

    Registration order is preserved and used as the final tie-breaker when
    ranking candidates.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredStrategy] = {}

    def register(
        self,
        strategy_id: str,
        capability: StrategyCapability,
        implementation: Optional[Strategy] = None,
    ) -> None:
        """
        Register a capability, optionally with its implementation.

        Raises:
            ValueError: If the ids of the capability or implementation differ
                from strategy_id.
        """
        if capability.id != strategy_id:
            raise ValueError(f"Capability id {capability.id!r} does not match {strategy_id!r}")
        if implementation is not None and implementation.capability().id != strategy_id:
            raise ValueError(
                f"Implementation id {implementation.capability().id!r} does not match {strategy_id!r}"
            )
        self._entries[strategy_id] = RegisteredStrategy(capability, implementation)

    def register_strategy(self, strategy: Strategy) -> None:
        """Register an implemented strategy under its own capability."""
        capability = strategy.capability()
        self.register(capability.id, capability, strategy)

    def unregister(self, strategy_id: str) -> bool:
        return self._entries.pop(strategy_id, None) is not None

    def get(self, strategy_id: str) -> Optional[RegisteredStrategy]:
        return self._entries.get(strategy_id)

    def capabilities(self) -> list[StrategyCapability]:
        """All capabilities in registration order."""
        return [entry.capability for entry in self._entries.values()]

    def ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, strategy_id: object) -> bool:
        return strategy_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def default_registry(
    config: FixLoopConfig,
    logger: Optional[FixLoopLogger] = None,
) -> StrategyRegistry:
    """
    Build the registry of built-in strategies.

    Strategies listed in strategies.disabled are left out. Command fixers
    from strategies.command_fixers are registered before the general
    fallback.

    Raises:
        ConfigError: If a command fixer names an unknown error category.
    """
    disabled = set(config.strategies.disabled)
    registry = StrategyRegistry()

    specialists: list[Strategy] = [
        WebDevelopmentStrategy(config, logger),
        UIRefactoringStrategy(config, logger),
        DataAnalysisStrategy(config, logger),
        TestingStrategy(config, logger),
    ]
    for strategy in specialists:
        if strategy.id not in disabled:
            registry.register_strategy(strategy)

    for capability in PLANNED_CAPABILITIES:
        if capability.id not in disabled:
            registry.register(capability.id, capability)

    for fixer in config.strategies.command_fixers:
        if fixer.id in disabled:
            continue
        try:
            registry.register_strategy(CommandStrategy(config, fixer, logger))
        except ValueError as e:
            raise ConfigError(f"Invalid command fixer {fixer.id!r}: {e}")

    general = GeneralStrategy(config, logger)
    if general.id not in disabled:
        registry.register_strategy(general)

    return registry


@dataclass
class OrchestrationResult:
    """Aggregate outcome of one orchestrator call."""
    succeeded: bool
    strategy_chain: list[str] = field(default_factory=list)
    total_iterations: int = 0
    changes: list[str] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)
    classification: Optional[ProblemClassification] = None
    results: list[StrategyResult] = field(default_factory=list)
    execution_path: list[str] = field(default_factory=list)
    memory_hint: Optional[str] = None

    @property
    def attempted(self) -> bool:
        """True when any strategy applied a fix."""
        return any(result.applied for result in self.results)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "succeeded": self.succeeded,
            "strategy_chain": list(self.strategy_chain),
            "total_iterations": self.total_iterations,
            "changes": list(self.changes),
            "modified_files": list(self.modified_files),
            "classification": self.classification.to_dict() if self.classification else None,
            "results": [r.to_dict() for r in self.results],
            "execution_path": list(self.execution_path),
            "memory_hint": self.memory_hint,
        }


class MultiStrategyOrchestrator:
    """
    Sequential fallback across candidate strategies.

    A strategy that raises is recorded as a failed attempt and the next
    candidate runs. Candidates registered without an implementation are
    skipped and logged as gaps.
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        classifier: Optional[ProblemClassifier] = None,
        memory: Optional[ExecutionMemoryStore] = None,
        logger: Optional[FixLoopLogger] = None,
    ) -> None:
        self.registry = registry
        self.classifier = classifier or ProblemClassifier()
        self.memory = memory
        self._logger = logger

    def _log(self, event_type: str, data: Optional[dict] = None, level: str = "info") -> None:
        """Log an event if logger is configured."""
        if self._logger:
            log_data = {"component": "orchestrator"}
            if data:
                log_data.update(data)
            self._logger.log(event_type, log_data, level=level)

    def classify(self, context: StrategyContext) -> ProblemClassification:
        """Classify the failure described by context."""
        return self.classifier.classify(
            context.request,
            context.diagnostic,
            self.registry.capabilities(),
            context.codebase_context,
        )

    def _apply_memory(
        self,
        candidates: list[str],
        entry_id: Optional[str],
        failed_approaches: list[str],
    ) -> tuple[list[str], Optional[str]]:
        """Move the strategy behind a remembered approach to the front."""
        if self.memory is None or entry_id is None:
            return candidates, None

        attempt = self.memory.next_successful_attempt(entry_id, failed_approaches, candidates)
        if attempt is None:
            return candidates, None

        self._log("memory_hint", {"approach": attempt.approach, "strategy": attempt.strategy_id})
        candidates = [attempt.strategy_id] + [c for c in candidates if c != attempt.strategy_id]
        return candidates, attempt.approach

    def execute(
        self,
        context: StrategyContext,
        entry_id: Optional[str] = None,
        failed_approaches: Optional[list[str]] = None,
    ) -> OrchestrationResult:
        """
        Try candidate strategies in order until one succeeds.

        Args:
            context: Request, latest diagnostic and run history.
            entry_id: Execution memory entry of the current run.
            failed_approaches: Approaches already tried in this run.

        Returns:
            OrchestrationResult aggregating every strategy that ran.
        """
        classification = self.classify(context)
        candidates, hint = self._apply_memory(
            list(classification.candidate_strategies), entry_id, failed_approaches or []
        )
        if hint is not None:
            context = replace(context, memory_hint=hint)

        self._log("classification", classification.to_dict())

        result = OrchestrationResult(
            succeeded=False,
            classification=classification,
            memory_hint=hint,
        )

        for strategy_id in candidates:
            registered = self.registry.get(strategy_id)
            if registered is None or not registered.implemented:
                self._log("strategy_gap", {"strategy": strategy_id}, level="warn")
                result.execution_path.append(f"{strategy_id}(gap)")
                continue

            result.execution_path.append(f"{strategy_id}(start)")
            try:
                strategy_result = registered.implementation.execute(context)
                result.execution_path.append(f"{strategy_id}(end)")
            except Exception as e:
                self._log("strategy_exception", {"strategy": strategy_id, "error": str(e)}, level="error")
                strategy_result = StrategyResult.failure_result(strategy_id, f"Strategy raised: {e}")
                result.execution_path.append(f"{strategy_id}(error)")

            result.strategy_chain.append(strategy_id)
            result.results.append(strategy_result)
            result.total_iterations += strategy_result.iterations
            result.changes.extend(strategy_result.changes)
            for path in strategy_result.modified_files:
                if path not in result.modified_files:
                    result.modified_files.append(path)

            if strategy_result.success:
                result.succeeded = True
                self._log("strategy_solved", {"strategy": strategy_id})
                break

        return result
