"""Tests for the bounded per-strategy repair loop."""

from __future__ import annotations

import pytest

from fixloop.errors import StrategyError
from fixloop.models import CodeEdit, FixSuggestion
from fixloop.strategies.base import StrategyContext, StrategyResult, suggestion_score


@pytest.fixture
def context():
    return StrategyContext(request="fix the failing unit tests", diagnostic="AssertionError")


class TestExecute:
    def test_stops_at_first_confident_suggestion(self, config, scripted_strategy, context):
        strategy = scripted_strategy(config, suggestions=[("Low", 0.5), ("High", 0.9)])
        result = strategy.execute(context)

        assert result.success
        assert result.iterations == 1
        assert result.changes == ["High"]
        assert result.recommendations[0] == "Solution applied successfully"

    def test_below_threshold_tries_all_then_fails(self, config, scripted_strategy, context):
        strategy = scripted_strategy(config, suggestions=[("Low", 0.5), ("Mid", 0.7)], budget=5)
        result = strategy.execute(context)

        assert not result.success
        assert result.applied
        assert [a.approach for a in result.attempts] == ["Mid", "Low"]
        assert result.iterations == 2
        assert result.errors[0] == "No suggestion reached the success threshold"
        assert result.recommendations[0] == "Failed to solve with scripted strategy"

    def test_budget_bounds_attempts(self, config, scripted_strategy, context):
        suggestions = [(f"S{i}", 0.5) for i in range(5)]
        result = scripted_strategy(config, suggestions=suggestions, budget=2).execute(context)
        assert len(result.attempts) == 2

    def test_threshold_is_exclusive(self, config, scripted_strategy, context):
        result = scripted_strategy(config, suggestions=[("Exact", 0.8)]).execute(context)
        assert not result.success

    def test_memory_hint_preferred(self, config, scripted_strategy):
        strategy = scripted_strategy(config, suggestions=[("First", 0.7), ("Second", 0.6)])
        context = StrategyContext(request="x", memory_hint="second")
        result = strategy.execute(context)
        assert result.attempts[0].approach == "Second"

    def test_no_suggestions(self, config, scripted_strategy, context):
        result = scripted_strategy(config, suggestions=[]).execute(context)
        assert not result.success
        assert result.errors == ["No actionable suggestions found"]
        assert result.attempts == []

    def test_propose_error_is_captured(self, config, scripted_strategy, context):
        strategy = scripted_strategy(config)

        def explode(_context):
            raise RuntimeError("analysis broke")

        strategy.propose_fixes = explode
        result = strategy.execute(context)

        assert not result.success
        assert result.errors == ["Analysis failed: analysis broke"]

    def test_failed_edit_is_recorded(self, config, scripted_strategy, context, tmp_path):
        (tmp_path / "a.py").write_text("a = 1\n")

        def edits(description):
            if description == "Broken":
                return [CodeEdit(file_path="a.py", new_code="x", original_code="missing")]
            return [CodeEdit(file_path="a.py", new_code="a = 2", original_code="a = 1")]

        strategy = scripted_strategy(
            config, suggestions=[("Broken", 0.95), ("Working", 0.9)], edits_for=edits
        )
        result = strategy.execute(context)

        assert result.success
        first, second = result.attempts
        assert not first.applied
        assert "not found" in first.error
        assert second.applied
        assert second.files == ["a.py"]
        assert result.modified_files == ["a.py"]
        assert (tmp_path / "a.py").read_text() == "a = 2\n"

    def test_apply_exception_is_captured(self, config, scripted_strategy, context):
        strategy = scripted_strategy(config, suggestions=[("Only", 0.9)])

        def explode(_suggestion):
            raise OSError("disk full")

        strategy.apply_fix = explode
        result = strategy.execute(context)

        assert not result.success
        assert not result.applied
        assert "disk full" in result.attempts[0].error

    def test_strategy_error_message_is_kept(self, config, scripted_strategy, context):
        strategy = scripted_strategy(config, suggestions=[("Only", 0.9)])

        def refuse(_suggestion):
            raise StrategyError("fixer timed out after 1s", "scripted")

        strategy.apply_fix = refuse
        result = strategy.execute(context)

        assert not result.applied
        assert result.attempts[0].error == "fixer timed out after 1s"
        assert "fixer timed out after 1s" in result.errors


def test_suggestion_score_decays():
    suggestion = FixSuggestion(strategy_id="x", description="d", confidence=0.8)
    assert suggestion_score(suggestion, 1) == pytest.approx(0.8)
    assert suggestion_score(suggestion, 3) == pytest.approx(0.64)


def test_failure_result_collects_applied_changes(config, scripted_strategy, context):
    result = scripted_strategy(config, suggestions=[("A", 0.5)]).execute(context)
    data = result.to_dict()

    assert data["changes"] == ["A"]
    assert data["attempts"][0]["applied"] is True
    assert StrategyResult.failure_result("x", "boom").changes == []
