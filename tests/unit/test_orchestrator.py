"""Tests for the strategy registry and multi-strategy orchestration."""

from __future__ import annotations

import pytest

from fixloop.config import CommandFixerConfig, ConfigError, StrategiesConfig
from fixloop.memory.store import AttemptOutcome, ExecutionMemoryStore
from fixloop.models import ErrorCategory, StrategyCapability
from fixloop.orchestrator import (
    MultiStrategyOrchestrator,
    StrategyRegistry,
    default_registry,
)
from fixloop.strategies.base import StrategyContext

REQUEST = "fix the failing unit tests"


@pytest.fixture
def context():
    return StrategyContext(request=REQUEST, diagnostic="AssertionError: Expected 'foo' but got 'bar'")


def _capability(strategy_id: str, base_confidence: float) -> StrategyCapability:
    return StrategyCapability(
        id=strategy_id,
        supported_categories=frozenset(ErrorCategory),
        base_confidence=base_confidence,
    )


class TestStrategyRegistry:
    def test_registration_order_preserved(self, config, scripted_strategy):
        registry = StrategyRegistry()
        registry.register_strategy(scripted_strategy(config, "b"))
        registry.register_strategy(scripted_strategy(config, "a"))

        assert registry.ids() == ["b", "a"]
        assert [c.id for c in registry.capabilities()] == ["b", "a"]
        assert "a" in registry and len(registry) == 2

    def test_capability_only_entry(self):
        registry = StrategyRegistry()
        registry.register("planned", _capability("planned", 0.7))
        assert not registry.get("planned").implemented

    def test_id_mismatch_rejected(self, config, scripted_strategy):
        registry = StrategyRegistry()
        with pytest.raises(ValueError):
            registry.register("x", _capability("y", 0.5))
        with pytest.raises(ValueError):
            registry.register("x", _capability("x", 0.5), scripted_strategy(config, "z"))

    def test_unregister(self):
        registry = StrategyRegistry()
        registry.register("x", _capability("x", 0.5))
        assert registry.unregister("x")
        assert not registry.unregister("x")


class TestDefaultRegistry:
    def test_order(self, config):
        assert default_registry(config).ids() == [
            "web_development",
            "ui_refactoring",
            "data_analysis",
            "testing",
            "architecture",
            "performance",
            "security",
            "general",
        ]

    def test_planned_are_not_implemented(self, config):
        registry = default_registry(config)
        assert not registry.get("security").implemented
        assert registry.get("testing").implemented

    def test_disabled_and_fixers(self, config):
        config.strategies = StrategiesConfig(
            disabled=["ui_refactoring", "security"],
            command_fixers=[CommandFixerConfig(id="ruff_fix", command="ruff check --fix .")],
        )
        ids = default_registry(config).ids()

        assert "ui_refactoring" not in ids and "security" not in ids
        assert ids[-2:] == ["ruff_fix", "general"]

    def test_bad_fixer_category(self, config):
        config.strategies = StrategiesConfig(
            command_fixers=[CommandFixerConfig(id="bad", command="true", categories=["nope"])],
        )
        with pytest.raises(ConfigError, match="bad"):
            default_registry(config)


class TestExecute:
    def test_falls_back_to_next_candidate(self, config, scripted_strategy, context):
        registry = StrategyRegistry()
        registry.register_strategy(scripted_strategy(config, "first", [("Weak", 0.5)], base_confidence=0.9))
        registry.register_strategy(scripted_strategy(config, "second", [("Strong", 0.9)], base_confidence=0.5))

        result = MultiStrategyOrchestrator(registry).execute(context)

        assert result.succeeded
        assert result.strategy_chain == ["first", "second"]
        assert result.changes == ["Weak", "Strong"]
        assert result.execution_path == ["first(start)", "first(end)", "second(start)", "second(end)"]
        assert result.attempted

    def test_stops_at_first_success(self, config, scripted_strategy, context):
        later = scripted_strategy(config, "later", base_confidence=0.1)
        registry = StrategyRegistry()
        registry.register_strategy(scripted_strategy(config, "first", base_confidence=0.9))
        registry.register_strategy(later)

        result = MultiStrategyOrchestrator(registry).execute(context)

        assert result.strategy_chain == ["first"]
        assert later.contexts == []

    def test_gap_is_skipped(self, config, scripted_strategy, context):
        registry = StrategyRegistry()
        registry.register("planned", _capability("planned", 0.95))
        registry.register_strategy(scripted_strategy(config, "real"))

        result = MultiStrategyOrchestrator(registry).execute(context)

        assert result.classification.candidate_strategies == ["planned", "real"]
        assert result.execution_path[0] == "planned(gap)"
        assert result.strategy_chain == ["real"]
        assert result.succeeded

    def test_raising_strategy_is_contained(self, config, scripted_strategy, raising_strategy, context):
        registry = StrategyRegistry()
        registry.register_strategy(raising_strategy(config, "broken", base_confidence=0.9))
        registry.register_strategy(scripted_strategy(config, "fine"))

        result = MultiStrategyOrchestrator(registry).execute(context)

        assert result.execution_path[:2] == ["broken(start)", "broken(error)"]
        assert result.results[0].errors == ["Strategy raised: boom"]
        assert result.succeeded

    def test_nothing_registered(self, context):
        result = MultiStrategyOrchestrator(StrategyRegistry()).execute(context)

        assert not result.succeeded
        assert not result.attempted
        assert result.execution_path == ["general(gap)"]

    def test_memory_moves_proven_strategy_first(self, config, scripted_strategy, context, tmp_path):
        memory = ExecutionMemoryStore(store_path=tmp_path / "mem.jsonl")
        memory.create_entry("past", REQUEST)
        memory.record_attempt("past", "second", "Do B", AttemptOutcome.SUCCESS, 1)
        memory.mark_succeeded("past", 1)
        memory.create_entry("current", REQUEST)

        second = scripted_strategy(config, "second", [("Do A", 0.85), ("Do B", 0.85)], base_confidence=0.5)
        registry = StrategyRegistry()
        registry.register_strategy(scripted_strategy(config, "first", base_confidence=0.9))
        registry.register_strategy(second)

        result = MultiStrategyOrchestrator(registry, memory=memory).execute(context, entry_id="current")

        assert result.memory_hint == "Do B"
        assert result.strategy_chain == ["second"]
        assert second.contexts[0].memory_hint == "Do B"
        assert result.changes == ["Do B"]

    def test_memory_hint_skips_failed_approaches(self, config, scripted_strategy, context, tmp_path):
        memory = ExecutionMemoryStore(store_path=tmp_path / "mem.jsonl")
        memory.create_entry("past", REQUEST)
        memory.record_attempt("past", "second", "Do B", AttemptOutcome.SUCCESS, 1)
        memory.mark_succeeded("past", 1)
        memory.create_entry("current", REQUEST)

        registry = StrategyRegistry()
        registry.register_strategy(scripted_strategy(config, "first", base_confidence=0.9))
        registry.register_strategy(scripted_strategy(config, "second", base_confidence=0.5))

        result = MultiStrategyOrchestrator(registry, memory=memory).execute(
            context, entry_id="current", failed_approaches=["Do B"]
        )

        assert result.memory_hint is None
        assert result.strategy_chain == ["first"]

    def test_to_dict(self, config, scripted_strategy, context):
        registry = StrategyRegistry()
        registry.register_strategy(scripted_strategy(config, "only"))
        data = MultiStrategyOrchestrator(registry).execute(context).to_dict()

        assert data["succeeded"] is True
        assert data["classification"]["primary_category"] == "test"
        assert data["results"][0]["strategy_id"] == "only"
