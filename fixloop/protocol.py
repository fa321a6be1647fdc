"""
Repair protocol state machine for fixloop.

Sequences one repair run:

┌─────────────┐     ┌─────────────┐     ┌─────────────┐     ┌─────────────┐
│   PENDING   │ --> │    PROBE    │ --> │    LOOP     │ --> │ COMPLETION  │
└─────────────┘     └─────────────┘     └─────────────┘     └─────────────┘
                           │                                       ▲
                           └────────── probe failure ──────────────┘

PROBE validates and materializes the verification check. LOOP verifies,
and on failure asks the orchestrator for one repair per iteration until
the check passes, the budget runs out or no fix can be applied.
COMPLETION updates and saves execution memory, cleans up and builds the
RunReport. Phases are never re-entered.
"""

from __future__ import annotations

import re
import time
import uuid
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Union

from fixloop.classifier import ProblemClassifier, select_tier
from fixloop.errors import MemoryStoreError, ProbeError, ProtocolStateError
from fixloop.memory.store import AttemptOutcome, ExecutionMemoryStore
from fixloop.models import ComplexityTier, IterationRecord, ProtocolPhase, RunReport
from fixloop.orchestrator import MultiStrategyOrchestrator, OrchestrationResult, default_registry
from fixloop.strategies.base import StrategyContext
from fixloop.verification import VerificationCheck, VerificationRunner

if TYPE_CHECKING:
    from fixloop.config import FixLoopConfig
    from fixloop.logger import FixLoopLogger
    from fixloop.models import VerificationOutcome


ALLOWED_TRANSITIONS: dict[ProtocolPhase, set[ProtocolPhase]] = {
    ProtocolPhase.PENDING: {ProtocolPhase.PROBE},
    ProtocolPhase.PROBE: {ProtocolPhase.LOOP, ProtocolPhase.COMPLETION},
    ProtocolPhase.LOOP: {ProtocolPhase.COMPLETION},
    ProtocolPhase.COMPLETION: set(),
}


def generate_run_id(request: str) -> str:
    """
    Generate a unique run ID from the request.

    Format: run-{slug}-{timestamp}-{suffix}
    """
    words = re.sub(r"[^a-z0-9\s]", "", request.lower()).split()[:4]
    slug = "-".join(words) if words else "request"
    slug = slug[:30]
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"run-{slug}-{timestamp}-{uuid.uuid4().hex[:6]}"


class RepairProtocol:
    """
    Drives a single repair run from probe to completion.

    A protocol instance is single use: run() may be called once.
    """

    def __init__(
        self,
        config: FixLoopConfig,
        orchestrator: MultiStrategyOrchestrator,
        runner: Optional[VerificationRunner] = None,
        memory: Optional[ExecutionMemoryStore] = None,
        logger: Optional[FixLoopLogger] = None,
    ) -> None:
        self.config = config
        self.orchestrator = orchestrator
        self.runner = runner or VerificationRunner(config, logger)
        self.memory = memory
        self._logger = logger
        self._phase = ProtocolPhase.PENDING

    @property
    def phase(self) -> ProtocolPhase:
        return self._phase

    def _log(self, event_type: str, data: Optional[dict] = None, level: str = "info") -> None:
        """Log an event if logger is configured."""
        if self._logger:
            log_data = {"component": "protocol"}
            if data:
                log_data.update(data)
            self._logger.log(event_type, log_data, level=level)

    def _transition(self, target: ProtocolPhase) -> None:
        if target not in ALLOWED_TRANSITIONS[self._phase]:
            raise ProtocolStateError(self._phase.value, target.value)
        self._log("phase", {"from": self._phase.value, "to": target.value})
        self._phase = target

    def run(
        self,
        request: str,
        check: Union[VerificationCheck, str, list[str]],
        codebase_context: str = "",
        max_iterations: Optional[int] = None,
        run_id: Optional[str] = None,
    ) -> RunReport:
        """
        Run the protocol.

        Args:
            request: Natural-language repair request.
            check: The verification check, or a command for one.
            codebase_context: Optional free text about the codebase.
            max_iterations: Overrides tier and config budgets when set.
            run_id: Optional run identifier.

        Returns:
            RunReport. Probe failures are reported, not raised.

        Raises:
            ProtocolStateError: If the protocol instance was already used.
        """
        if not isinstance(check, VerificationCheck):
            check = VerificationCheck(command=check)
        run_id = run_id or generate_run_id(request)

        context_manager = self._logger.run_context(run_id) if self._logger else nullcontext()
        with context_manager:
            return self._run(request, check, codebase_context, max_iterations, run_id)

    def _run(
        self,
        request: str,
        check: VerificationCheck,
        codebase_context: str,
        max_iterations: Optional[int],
        run_id: str,
    ) -> RunReport:
        start = time.monotonic()
        self._transition(ProtocolPhase.PROBE)

        if self.memory is not None:
            self.memory.create_entry(run_id, request, metadata={"check": check.display})

        try:
            prepared = self.runner.prepare(check)
        except ProbeError as e:
            self._log("probe_failed", {"error": str(e)}, level="error")
            self._transition(ProtocolPhase.COMPLETION)
            return self._complete(
                run_id, start, check, succeeded=False, tier=None, budget=0,
                records=[], orchestrations=[], failure_error=str(e),
            )

        self._transition(ProtocolPhase.LOOP)
        timeout_ms = self.config.loop.verification_timeout_ms
        outcome = self.runner.run(prepared, timeout_ms)

        initial = self.orchestrator.classify(StrategyContext(request, outcome.diagnostic, codebase_context))
        tier = select_tier(request, initial)
        budget = max_iterations or self.config.loop.max_iterations or self.config.tiers.budget_for(tier.value)
        self._log("budget", {"tier": tier.value, "max_iterations": budget, "passed": outcome.passed})

        if self.memory is not None:
            entry = self.memory.get_entry(run_id)
            if entry is not None:
                entry.metadata.update({"tier": tier.value, "category": initial.primary_category.value})

        records: list[IterationRecord] = []
        orchestrations: list[OrchestrationResult] = []
        tried: list[str] = []
        failure_error: Optional[str] = None

        for index in range(1, budget + 1):
            if outcome.passed:
                break

            context = StrategyContext(
                request=request,
                diagnostic=outcome.diagnostic,
                codebase_context=codebase_context,
                iteration=index,
                previous_iterations=list(records),
                metadata={"run_id": run_id},
            )
            orchestration = self.orchestrator.execute(context, entry_id=run_id, failed_approaches=tried)
            orchestrations.append(orchestration)
            applied = self._record_attempts(run_id, index, orchestration, tried)

            if not orchestration.attempted:
                failure_error = _first_error(orchestration) or "No strategy could apply a fix"
                records.append(self._iteration_record(index, orchestration, False, failure_error))
                self._log("early_termination", {"iteration": index, "error": failure_error}, level="warn")
                break

            outcome = self.runner.run(prepared, timeout_ms)
            records.append(self._iteration_record(index, orchestration, outcome.passed, None))
            self._log("iteration", records[-1].to_dict())

            if outcome.passed:
                self._record_success(run_id, index, applied)

        succeeded = outcome.passed
        if not succeeded and failure_error is None:
            failure_error = f"Verification still failing after {len(records)} iteration(s): {_tail(outcome)}"

        self._transition(ProtocolPhase.COMPLETION)
        return self._complete(
            run_id, start, prepared, succeeded=succeeded, tier=tier, budget=budget,
            records=records, orchestrations=orchestrations,
            failure_error=None if succeeded else failure_error,
        )

    def _record_attempts(
        self,
        run_id: str,
        index: int,
        orchestration: OrchestrationResult,
        tried: list[str],
    ) -> list[tuple[str, str]]:
        """Record attempts in memory and return the applied (strategy, approach) pairs."""
        applied: list[tuple[str, str]] = []
        for result in orchestration.results:
            for attempt in result.attempts:
                if attempt.approach not in tried:
                    tried.append(attempt.approach)
                if attempt.applied:
                    applied.append((result.strategy_id, attempt.approach))
                if self.memory is not None:
                    self.memory.record_attempt(
                        run_id,
                        result.strategy_id,
                        attempt.approach,
                        AttemptOutcome.PARTIAL if attempt.applied else AttemptOutcome.FAILURE,
                        index,
                        attempt.error,
                    )
            if self.memory is not None:
                description = "; ".join(result.changes)
                for path in result.modified_files:
                    self.memory.record_applied_edit(run_id, path, description)
        return applied

    def _record_success(self, run_id: str, index: int, applied: list[tuple[str, str]]) -> None:
        """Mark the approaches of the iteration that made verification pass."""
        if self.memory is None:
            return
        seen: set[tuple[str, str]] = set()
        for strategy_id, approach in applied:
            if (strategy_id, approach) in seen:
                continue
            seen.add((strategy_id, approach))
            self.memory.record_attempt(run_id, strategy_id, approach, AttemptOutcome.SUCCESS, index)

    def _iteration_record(
        self,
        index: int,
        orchestration: OrchestrationResult,
        passed: bool,
        error: Optional[str],
    ) -> IterationRecord:
        chain = orchestration.strategy_chain
        return IterationRecord(
            index=index,
            strategy_id=chain[-1] if chain else "none",
            suggestion_description="; ".join(orchestration.changes),
            files_touched=tuple(orchestration.modified_files),
            succeeded=passed,
            error=error,
        )

    def _complete(
        self,
        run_id: str,
        start: float,
        check: VerificationCheck,
        succeeded: bool,
        tier: Optional[ComplexityTier],
        budget: int,
        records: list[IterationRecord],
        orchestrations: list[OrchestrationResult],
        failure_error: Optional[str],
    ) -> RunReport:
        iterations_used = len(records)

        if self.memory is not None:
            if succeeded:
                self.memory.mark_succeeded(run_id, iterations_used)
            else:
                self.memory.mark_completed(run_id, iterations_used)
            try:
                self.memory.save()
            except MemoryStoreError as e:
                self._log("memory_save_failed", {"error": str(e)}, level="error")

        if self.config.loop.cleanup_on_completion:
            self.runner.cleanup(check)

        strategy_chain: list[str] = []
        changes: list[str] = []
        modified_files: list[str] = []
        for orchestration in orchestrations:
            strategy_chain.extend(s for s in orchestration.strategy_chain if s not in strategy_chain)
            changes.extend(orchestration.changes)
            modified_files.extend(f for f in orchestration.modified_files if f not in modified_files)

        report = RunReport(
            run_id=run_id,
            succeeded=succeeded,
            iterations_used=iterations_used,
            max_iterations=budget,
            tier=tier,
            elapsed_ms=int((time.monotonic() - start) * 1000),
            strategy_chain=strategy_chain,
            changes=changes,
            modified_files=modified_files,
            iterations=list(records),
            failure_error=failure_error,
        )
        self._log("run_complete", {
            "succeeded": succeeded,
            "iterations_used": iterations_used,
            "max_iterations": budget,
        })
        return report


def _first_error(orchestration: OrchestrationResult) -> Optional[str]:
    for result in orchestration.results:
        if result.errors:
            return f"{result.strategy_id}: {result.errors[0]}"
    return None


def _tail(outcome: VerificationOutcome, limit: int = 200) -> str:
    text = outcome.diagnostic.strip().splitlines()
    return text[-1][:limit] if text else "no diagnostic"


def build_protocol(
    config: FixLoopConfig,
    use_memory: bool = True,
    logger: Optional[FixLoopLogger] = None,
) -> RepairProtocol:
    """
    Wire a protocol with the built-in strategies.

    Raises:
        MemoryStoreError: If the memory file cannot be loaded.
        ConfigError: If a command fixer is misconfigured.
    """
    memory = None
    if use_memory and config.memory.enabled:
        memory = ExecutionMemoryStore.from_config(config)

    orchestrator = MultiStrategyOrchestrator(
        default_registry(config, logger),
        classifier=ProblemClassifier(config.strategies.default_strategy),
        memory=memory,
        logger=logger,
    )
    return RepairProtocol(config, orchestrator, memory=memory, logger=logger)
