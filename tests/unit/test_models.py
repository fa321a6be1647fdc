"""Tests for core data models."""

from __future__ import annotations

import dataclasses

import pytest

from fixloop.models import (
    CodeEdit,
    ComplexityTier,
    ErrorCategory,
    FixSuggestion,
    IterationRecord,
    ProblemClassification,
    RunReport,
    StrategyCapability,
    VerificationOutcome,
)


class TestFixSuggestion:
    @pytest.mark.parametrize("confidence", [-0.1, 1.01])
    def test_confidence_bounds(self, confidence):
        with pytest.raises(ValueError, match="confidence"):
            FixSuggestion(strategy_id="general", description="x", confidence=confidence)

    def test_advisory_without_edits(self):
        suggestion = FixSuggestion(strategy_id="general", description="x")
        assert suggestion.is_advisory

    def test_not_advisory_with_edits(self):
        suggestion = FixSuggestion(
            strategy_id="general",
            description="x",
            edits=[CodeEdit(file_path="a.py", new_code="pass\n")],
        )
        assert not suggestion.is_advisory
        assert suggestion.to_dict()["edits"][0]["file_path"] == "a.py"


class TestIterationRecord:
    def test_index_starts_at_one(self):
        with pytest.raises(ValueError):
            IterationRecord(index=0, strategy_id="general", suggestion_description="")

    def test_is_immutable(self):
        record = IterationRecord(index=1, strategy_id="general", suggestion_description="x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.succeeded = True


class TestVerificationOutcome:
    def test_is_immutable(self):
        outcome = VerificationOutcome(passed=True, output="", diagnostic="", duration_ms=1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            outcome.passed = False


class TestStrategyCapability:
    def test_general_handles_any_domain(self):
        capability = StrategyCapability(id="general", supported_categories=frozenset(ErrorCategory))
        assert capability.is_general
        assert capability.handles_domain(set())
        assert capability.handles_domain({"web"})

    def test_specialist_needs_domain(self):
        capability = StrategyCapability(
            id="web",
            supported_categories=frozenset({ErrorCategory.LOGIC}),
            supported_domains=frozenset({"web"}),
        )
        assert not capability.is_general
        assert not capability.handles_domain({"ui"})
        assert capability.handles_domain({"ui", "web"})
        assert capability.handles_category({ErrorCategory.LOGIC, ErrorCategory.TYPE})
        assert not capability.handles_category({ErrorCategory.TYPE})


def test_classification_from_dict():
    classification = ProblemClassification(
        primary_category=ErrorCategory.TEST,
        secondary_categories=[ErrorCategory.RUNTIME],
        candidate_strategies=["testing", "general"],
        confidence=0.4,
        domains=["testing"],
    )
    restored = ProblemClassification.from_dict(classification.to_dict())

    assert restored == classification
    assert restored.categories == {ErrorCategory.TEST, ErrorCategory.RUNTIME}


def test_run_report_to_dict():
    report = RunReport(
        run_id="run-1",
        succeeded=False,
        iterations_used=1,
        max_iterations=5,
        tier=ComplexityTier.SIMPLE,
        elapsed_ms=10,
        iterations=[IterationRecord(index=1, strategy_id="general", suggestion_description="x")],
        failure_error="still failing",
    )
    data = report.to_dict()

    assert data["tier"] == "simple"
    assert data["iterations"][0]["index"] == 1
    assert data["failure_error"] == "still failing"
