"""Tests for the execution memory store.

Covers similarity search, approach suggestion, pruning, statistics and
JSONL persistence.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fixloop.errors import MemoryStoreError
from fixloop.memory.store import (
    SCHEMA_VERSION,
    AttemptOutcome,
    ExecutionMemoryEntry,
    ExecutionMemoryStore,
    jaccard_similarity,
    tokenize,
)


def _entry(
    entry_id: str,
    request: str = "fix the failing unit tests",
    succeeded: bool = True,
    total_iterations: int = 1,
    minutes_ago: int = 0,
) -> ExecutionMemoryEntry:
    timestamp = (datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)).isoformat()
    return ExecutionMemoryEntry(
        id=entry_id,
        original_request=request,
        succeeded=succeeded,
        total_iterations=total_iterations,
        timestamp=timestamp,
    )


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "memory" / "executions.jsonl"


@pytest.fixture
def store(store_path: Path) -> ExecutionMemoryStore:
    return ExecutionMemoryStore(store_path=store_path)


class TestSimilarity:
    def test_tokenize_drops_short_tokens(self):
        assert tokenize("Fix the UI of an app") == {"fix", "the", "app"}

    def test_jaccard_symmetric(self):
        a, b = tokenize("fix the failing unit tests"), tokenize("fix failing integration tests")
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)
        assert jaccard_similarity(a, b) == pytest.approx(3 / 6)

    def test_identical_and_empty(self):
        tokens = tokenize("fix the failing unit tests")
        assert jaccard_similarity(tokens, tokens) == 1.0
        assert jaccard_similarity(set(), set()) == 0.0


class TestFindSimilarSuccesses:
    def test_identical_request_found(self, store):
        store.add(_entry("past"))
        assert [e.id for e in store.find_similar_successes("fix the failing unit tests")] == ["past"]

    def test_failures_excluded(self, store):
        store.add(_entry("past", succeeded=False))
        assert store.find_similar_successes("fix the failing unit tests") == []

    def test_threshold_is_exclusive(self, store):
        # similarity exactly 0.5
        store.add(_entry("past", request="fix failing integration tests"))
        assert store.find_similar_successes("fix the failing unit tests") == []

    def test_sorted_by_iterations_descending(self, store):
        store.add(_entry("one", total_iterations=1))
        store.add(_entry("four", total_iterations=4))
        store.add(_entry("two", total_iterations=2))
        assert [e.id for e in store.find_similar_successes("fix the failing unit tests")] == [
            "four", "two", "one",
        ]

    def test_prefer_fewer_iterations(self, store_path):
        store = ExecutionMemoryStore(store_path=store_path, prefer_fewer_iterations=True)
        store.add(_entry("one", total_iterations=1))
        store.add(_entry("four", total_iterations=4))
        assert [e.id for e in store.find_similar_successes("fix the failing unit tests")] == ["one", "four"]

    def test_strategy_filter(self, store):
        store.add(_entry("past"))
        store.record_attempt("past", "testing", "Fix it", AttemptOutcome.SUCCESS, 1)
        assert store.find_similar_successes("fix the failing unit tests", strategy_id="testing")
        assert store.find_similar_successes("fix the failing unit tests", strategy_id="general") == []


class TestSuggestNextApproach:
    @pytest.fixture
    def seeded(self, store):
        store.add(_entry("run-1", minutes_ago=5))
        store.record_attempt("run-1", "testing", "Update test expectations", AttemptOutcome.FAILURE, 1)
        store.record_attempt("run-1", "testing", "Fix implementation", AttemptOutcome.SUCCESS, 2)
        store.mark_succeeded("run-1", 2)
        store.create_entry("run-2", "fix the failing unit tests")
        return store

    def test_suggests_successful_approach(self, seeded):
        assert seeded.suggest_next_approach("run-2", [], ["testing", "general"]) == "Fix implementation"

    def test_skips_failed_approaches(self, seeded):
        assert seeded.suggest_next_approach("run-2", ["Fix implementation"], ["testing"]) is None

    def test_requires_candidate_strategy(self, seeded):
        assert seeded.suggest_next_approach("run-2", [], ["general"]) is None

    def test_unknown_entry(self, seeded):
        assert seeded.suggest_next_approach("missing", [], ["testing"]) is None

    def test_next_successful_attempt_carries_strategy(self, seeded):
        attempt = seeded.next_successful_attempt("run-2", [], ["testing"])
        assert attempt.strategy_id == "testing"
        assert attempt.iteration == 2

    def test_current_run_is_not_its_own_source(self, store):
        store.create_entry("solo", "fix the failing unit tests")
        store.record_attempt("solo", "testing", "Fix it", AttemptOutcome.SUCCESS, 1)
        store.mark_succeeded("solo", 1)
        assert store.suggest_next_approach("solo", [], ["testing"]) is None


class TestMutation:
    def test_unknown_entry_returns_false(self, store):
        assert store.record_attempt("missing", "general", "x", AttemptOutcome.FAILURE, 1) is False
        assert store.record_applied_edit("missing", "a.py", "x") is False
        assert store.mark_succeeded("missing", 1) is False
        assert store.mark_completed("missing", 1) is False

    def test_string_outcome_accepted(self, store):
        store.create_entry("run", "x")
        store.record_attempt("run", "general", "x", "partial", 1)
        assert store.get_entry("run").attempts[0].outcome == AttemptOutcome.PARTIAL

    def test_delete_and_clear(self, store):
        store.add(_entry("a"))
        store.add(_entry("b"))
        assert store.delete("a")
        assert not store.delete("a")
        store.clear()
        assert len(store) == 0


class TestPruning:
    def test_add_evicts_oldest(self, store_path):
        store = ExecutionMemoryStore(store_path=store_path, max_entries=3)
        for i in range(5):
            store.add(_entry(f"e{i}", minutes_ago=10 - i))

        assert len(store) == 3
        assert {e.id for e in store.list_entries()} == {"e2", "e3", "e4"}

    def test_size_never_exceeds_cap(self, store_path):
        store = ExecutionMemoryStore(store_path=store_path, max_entries=2)
        for i in range(6):
            store.create_entry(f"run-{i}", "fix it")
            assert len(store) <= 2

    def test_prune_memory_returns_evicted(self, store):
        for i in range(4):
            store.add(_entry(f"e{i}", minutes_ago=i))
        assert store.prune_memory(1) == 3
        assert [e.id for e in store.list_entries()] == ["e0"]
        assert store.prune_memory(1) == 0


class TestQueries:
    def test_list_entries_newest_first_and_filtered(self, store):
        store.add(_entry("old", minutes_ago=10))
        store.add(_entry("new", minutes_ago=1, succeeded=False))

        assert [e.id for e in store.list_entries()] == ["new", "old"]
        assert [e.id for e in store.list_entries(succeeded=True)] == ["old"]
        assert [e.id for e in store.list_entries(limit=1)] == ["new"]

    def test_stats(self, store):
        store.add(_entry("a", total_iterations=2))
        store.add(_entry("b", total_iterations=4))
        store.add(_entry("c", succeeded=False, total_iterations=5))
        store.record_attempt("a", "testing", "x", AttemptOutcome.SUCCESS, 1)
        store.record_attempt("b", "testing", "y", AttemptOutcome.SUCCESS, 1)
        store.record_attempt("c", "general", "z", AttemptOutcome.FAILURE, 1)

        stats = store.get_stats()
        assert stats["total_executions"] == 3
        assert stats["successful_executions"] == 2
        assert stats["success_rate"] == pytest.approx(2 / 3)
        assert stats["average_iterations"] == pytest.approx(3.0)
        assert stats["most_common_strategies"] == ["testing", "general"]

    def test_empty_stats(self, store):
        stats = store.get_stats()
        assert stats["success_rate"] == 0.0
        assert stats["average_iterations"] == 0.0


class TestPersistence:
    def test_save_and_load(self, store, store_path):
        entry = store.create_entry("run-1", "fix the failing unit tests", metadata={"tier": "simple"})
        store.record_attempt("run-1", "testing", "Fix it", AttemptOutcome.SUCCESS, 1)
        store.record_applied_edit("run-1", "app.py", "Fix it")
        store.mark_succeeded("run-1", 1)
        store.save()

        header = json.loads(store_path.read_text().splitlines()[0])
        assert header["schema_version"] == SCHEMA_VERSION
        assert header["count"] == 1

        loaded = ExecutionMemoryStore.load(store_path)
        restored = loaded.get_entry("run-1")
        assert restored == entry
        assert restored.metadata == {"tier": "simple"}
        assert restored.successful_approaches[0].approach == "Fix it"

    def test_missing_file_gives_empty_store(self, store_path):
        assert len(ExecutionMemoryStore.load(store_path)) == 0

    def test_corrupt_lines_skipped(self, store, store_path, caplog):
        store.add(_entry("good"))
        store.save()
        with open(store_path, "a") as f:
            f.write("{not json\n")
            f.write(json.dumps({"id": "no-request"}) + "\n")

        with caplog.at_level(logging.WARNING, logger="fixloop.memory.store"):
            loaded = ExecutionMemoryStore.load(store_path)

        assert [e.id for e in loaded.list_entries()] == ["good"]
        assert "corrupt line" in caplog.text
        assert "invalid entry" in caplog.text

    def test_newer_schema_rejected(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps({"schema_version": SCHEMA_VERSION + 1}) + "\n")
        with pytest.raises(MemoryStoreError, match="schema"):
            ExecutionMemoryStore.load(store_path)

    def test_headerless_file_still_loads(self, store_path, caplog):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps(_entry("legacy").to_dict()) + "\n")
        with caplog.at_level(logging.WARNING, logger="fixloop.memory.store"):
            loaded = ExecutionMemoryStore.load(store_path)
        assert loaded.get_entry("legacy") is not None
        assert "No schema header" in caplog.text

    def test_load_prunes_to_cap(self, store, store_path):
        for i in range(4):
            store.add(_entry(f"e{i}", minutes_ago=i))
        store.save()
        assert len(ExecutionMemoryStore.load(store_path, max_entries=2)) == 2

    def test_from_config(self, config):
        store = ExecutionMemoryStore.from_config(config)
        assert store.store_path == config.memory_path
        assert store.max_entries == config.memory.max_entries
