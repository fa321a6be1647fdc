"""
Core data models for fixloop.

This module defines the foundational data structures used throughout the system:
- Enums for error categories, fix types, complexity tiers and protocol phases
- Dataclasses for verification outcomes, classifications, fix suggestions,
  iteration records, strategy capabilities and run reports
- JSON serialization support for every record that leaves the process
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorCategory(Enum):
    """
    Closed set of failure categories.

    Assigned by the classifier from diagnostic text and never inferred
    retroactively.
    """
    SYNTAX = "syntax"
    TYPE = "type"
    DEPENDENCY = "dependency"
    LOGIC = "logic"
    TEST = "test"
    BUILD = "build"
    LINT = "lint"
    RUNTIME = "runtime"
    OTHER = "other"


class FixType(Enum):
    """Kinds of change a fix suggestion can describe."""
    ADD_IMPORT = "add_import"
    REMOVE_IMPORT = "remove_import"
    UPDATE_TYPE = "update_type"
    FIX_SYNTAX = "fix_syntax"
    ADD_DEPENDENCY = "add_dependency"
    MODIFY_LOGIC = "modify_logic"
    UPDATE_TEST = "update_test"
    ADD_FUNCTION = "add_function"
    REMOVE_FUNCTION = "remove_function"
    REFACTOR = "refactor"
    RUN_COMMAND = "run_command"


class ComplexityTier(Enum):
    """
    Complexity tiers that fix the iteration budget of a run.

    Values match the attribute names of TierConfig.
    """
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    MULTI_STRATEGY = "multi_strategy"


class ProtocolPhase(Enum):
    """Phases of the repair protocol, entered strictly in order."""
    PENDING = "pending"
    PROBE = "probe"
    LOOP = "loop"
    COMPLETION = "completion"


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Result of one verification run.

    Produced once per run of the check and never modified afterwards.
    """
    passed: bool
    output: str
    diagnostic: str
    duration_ms: int
    exit_code: int = -1
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "passed": self.passed,
            "output": self.output,
            "diagnostic": self.diagnostic,
            "duration_ms": self.duration_ms,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
        }


@dataclass
class ProblemClassification:
    """
    Which kind of failure occurred and which strategies may fix it.

    Recomputed every iteration because the diagnostic text changes.
    """
    primary_category: ErrorCategory
    secondary_categories: list[ErrorCategory] = field(default_factory=list)
    candidate_strategies: list[str] = field(default_factory=list)
    confidence: float = 0.3
    rationale: str = ""
    domains: list[str] = field(default_factory=list)

    @property
    def categories(self) -> set[ErrorCategory]:
        """Primary plus secondary categories."""
        return {self.primary_category, *self.secondary_categories}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "primary_category": self.primary_category.value,
            "secondary_categories": [c.value for c in self.secondary_categories],
            "candidate_strategies": list(self.candidate_strategies),
            "confidence": self.confidence,
            "rationale": self.rationale,
            "domains": list(self.domains),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProblemClassification:
        """Create from dictionary."""
        return cls(
            primary_category=ErrorCategory(data["primary_category"]),
            secondary_categories=[ErrorCategory(c) for c in data.get("secondary_categories", [])],
            candidate_strategies=list(data.get("candidate_strategies", [])),
            confidence=data.get("confidence", 0.3),
            rationale=data.get("rationale", ""),
            domains=list(data.get("domains", [])),
        )


@dataclass
class CodeEdit:
    """
    A single change to one file.

    Either replaces line_number (1-based) with new_code, or replaces the
    first occurrence of original_code with new_code.
    """
    file_path: str
    new_code: str
    original_code: str = ""
    line_number: Optional[int] = None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "file_path": self.file_path,
            "new_code": self.new_code,
            "original_code": self.original_code,
            "line_number": self.line_number,
            "description": self.description,
        }


@dataclass
class FixSuggestion:
    """
    A proposed repair produced by a strategy.

    Ephemeral: generated, optionally applied, then discarded. Only the
    description survives, inside execution memory.
    """
    strategy_id: str
    description: str
    target_files: list[str] = field(default_factory=list)
    edits: list[CodeEdit] = field(default_factory=list)
    confidence: float = 0.5
    fix_type: FixType = FixType.MODIFY_LOGIC

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @property
    def is_advisory(self) -> bool:
        """True when the suggestion carries no concrete edits."""
        return not self.edits

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "strategy_id": self.strategy_id,
            "description": self.description,
            "target_files": list(self.target_files),
            "edits": [e.to_dict() for e in self.edits],
            "confidence": self.confidence,
            "fix_type": self.fix_type.value,
        }


@dataclass(frozen=True)
class IterationRecord:
    """One outer verify/fix iteration. Appended to the run history, never mutated."""
    index: int
    strategy_id: str
    suggestion_description: str
    files_touched: tuple[str, ...] = ()
    succeeded: bool = False
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.index < 1:
            raise ValueError(f"iteration index must be >= 1, got {self.index}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "index": self.index,
            "strategy_id": self.strategy_id,
            "suggestion_description": self.suggestion_description,
            "files_touched": list(self.files_touched),
            "succeeded": self.succeeded,
            "error": self.error,
        }


GENERAL_DOMAIN = "*"


@dataclass(frozen=True)
class StrategyCapability:
    """
    Static self-description of a repair strategy.

    Declared at registration time; the classifier filters candidates on
    supported_categories and supported_domains.
    """
    id: str
    supported_categories: frozenset[ErrorCategory]
    supported_domains: frozenset[str] = frozenset({GENERAL_DOMAIN})
    base_confidence: float = 0.5
    iteration_budget: int = 5
    description: str = ""

    @property
    def is_general(self) -> bool:
        """True for generality-optimized strategies."""
        return GENERAL_DOMAIN in self.supported_domains

    def handles_category(self, categories: set[ErrorCategory]) -> bool:
        """Check whether any of the categories is supported."""
        return bool(self.supported_categories & categories)

    def handles_domain(self, domains: set[str]) -> bool:
        """Check whether the strategy applies to the detected domains."""
        return self.is_general or bool(self.supported_domains & domains)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "supported_categories": sorted(c.value for c in self.supported_categories),
            "supported_domains": sorted(self.supported_domains),
            "base_confidence": self.base_confidence,
            "iteration_budget": self.iteration_budget,
            "description": self.description,
        }


@dataclass
class RunReport:
    """Final report of a repair run, consumed by the CLI or another caller."""
    run_id: str
    succeeded: bool
    iterations_used: int
    max_iterations: int
    tier: Optional[ComplexityTier]
    elapsed_ms: int
    strategy_chain: list[str] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)
    iterations: list[IterationRecord] = field(default_factory=list)
    failure_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "succeeded": self.succeeded,
            "iterations_used": self.iterations_used,
            "max_iterations": self.max_iterations,
            "tier": self.tier.value if self.tier else None,
            "elapsed_ms": self.elapsed_ms,
            "strategy_chain": list(self.strategy_chain),
            "changes": list(self.changes),
            "modified_files": list(self.modified_files),
            "iterations": [r.to_dict() for r in self.iterations],
            "failure_error": self.failure_error,
        }
