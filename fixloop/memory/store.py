"""
Execution Memory Store for fixloop.

Provides cross-run learning:
- ExecutionMemoryEntry dataclass, one per repair run
- AttemptRecord / AppliedEdit records appended during a run
- Jaccard similarity over request tokens to find similar past successes
- suggest_next_approach() to reuse a proven approach before fresh analysis
- Eager rolling-history pruning, oldest first by timestamp

Storage is a JSONL file: a header line carrying schema_version, then one
entry per line. Saves rewrite the file atomically.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from fixloop.errors import MemoryStoreError
from fixloop.utils.fs import FileSystemError, safe_write

if TYPE_CHECKING:
    from fixloop.config import FixLoopConfig

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_MAX_ENTRIES = 100
DEFAULT_SIMILARITY_THRESHOLD = 0.5


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AttemptOutcome(Enum):
    """Outcome of one recorded approach."""
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


@dataclass
class AttemptRecord:
    """One approach tried by a strategy during a run."""
    strategy_id: str
    approach: str
    outcome: AttemptOutcome
    iteration: int
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "strategy_id": self.strategy_id,
            "approach": self.approach,
            "outcome": self.outcome.value,
            "iteration": self.iteration,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttemptRecord:
        """Deserialize from dictionary."""
        return cls(
            strategy_id=data["strategy_id"],
            approach=data["approach"],
            outcome=AttemptOutcome(data["outcome"]),
            iteration=data.get("iteration", 0),
            error=data.get("error"),
        )


@dataclass
class AppliedEdit:
    """A change that was written to a file during a run."""
    file: str
    description: str
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {"file": self.file, "description": self.description, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppliedEdit:
        """Deserialize from dictionary."""
        return cls(
            file=data["file"],
            description=data.get("description", ""),
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class ExecutionMemoryEntry:
    """Memory of a single repair run.

    Attributes:
        id: Run identifier.
        original_request: The request text the run started with.
        attempts: Approaches tried, in order.
        applied_edits: Files changed, in order.
        succeeded: Whether verification passed.
        total_iterations: Outer iterations the run used.
        timestamp: ISO timestamp of creation; drives pruning.
        metadata: Free-form extras (tier, classification, ...).
    """

    id: str
    original_request: str
    attempts: list[AttemptRecord] = field(default_factory=list)
    applied_edits: list[AppliedEdit] = field(default_factory=list)
    succeeded: bool = False
    total_iterations: int = 0
    timestamp: str = field(default_factory=_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def successful_approaches(self) -> list[AttemptRecord]:
        return [a for a in self.attempts if a.outcome == AttemptOutcome.SUCCESS]

    def used_strategy(self, strategy_id: str) -> bool:
        """Check whether any attempt came from strategy_id."""
        return any(a.strategy_id == strategy_id for a in self.attempts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "original_request": self.original_request,
            "attempts": [a.to_dict() for a in self.attempts],
            "applied_edits": [e.to_dict() for e in self.applied_edits],
            "succeeded": self.succeeded,
            "total_iterations": self.total_iterations,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionMemoryEntry:
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            original_request=data["original_request"],
            attempts=[AttemptRecord.from_dict(a) for a in data.get("attempts", [])],
            applied_edits=[AppliedEdit.from_dict(e) for e in data.get("applied_edits", [])],
            succeeded=data.get("succeeded", False),
            total_iterations=data.get("total_iterations", 0),
            timestamp=data["timestamp"],
            metadata=data.get("metadata", {}),
        )


def tokenize(text: str) -> set[str]:
    """Lowercase, split on whitespace, drop tokens of length <= 2."""
    return {token for token in text.lower().split() if len(token) > 2}


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """|A & B| / |A | B|, 0.0 when both are empty."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class ExecutionMemoryStore:
    """Persistent store of ExecutionMemoryEntry records.

    Provides:
    - create_entry() / record_attempt() / record_applied_edit() / mark_*()
    - find_similar_successes(): Jaccard similarity over request tokens
    - suggest_next_approach(): first untried successful approach
    - prune_memory(): keep the newest entries
    - save() / load(): JSONL persistence with schema version

    Storage location: .fixloop/memory/executions.jsonl (default)
    """

    def __init__(
        self,
        store_path: Optional[Path] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        prefer_fewer_iterations: bool = False,
    ) -> None:
        """Initialize the memory store.

        Args:
            store_path: Path to the JSONL file. Defaults to .fixloop/memory/executions.jsonl
            max_entries: Rolling history cap.
            similarity_threshold: Entries must be strictly more similar than this.
            prefer_fewer_iterations: Rank similar successes by ascending iterations.
        """
        if store_path is None:
            store_path = Path.cwd() / ".fixloop" / "memory" / "executions.jsonl"
        self.store_path = Path(store_path)
        self.max_entries = max_entries
        self.similarity_threshold = similarity_threshold
        self.prefer_fewer_iterations = prefer_fewer_iterations
        self._entries: dict[str, ExecutionMemoryEntry] = {}

    @classmethod
    def from_config(cls, config: FixLoopConfig) -> ExecutionMemoryStore:
        """Load the store configured under memory: in config.yaml."""
        return cls.load(
            config.memory_path,
            max_entries=config.memory.max_entries,
            similarity_threshold=config.memory.similarity_threshold,
            prefer_fewer_iterations=config.memory.prefer_fewer_iterations,
        )

    def __len__(self) -> int:
        return len(self._entries)

    # Mutation

    def add(self, entry: ExecutionMemoryEntry) -> None:
        """Add an existing entry, pruning if the cap is exceeded."""
        self._entries[entry.id] = entry
        if len(self._entries) > self.max_entries:
            self.prune_memory(self.max_entries)

    def create_entry(
        self,
        entry_id: str,
        request: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ExecutionMemoryEntry:
        """Create the entry for a new run.

        Args:
            entry_id: Run identifier.
            request: The original request text.
            metadata: Optional extras stored with the entry.

        Returns:
            The new entry.
        """
        entry = ExecutionMemoryEntry(id=entry_id, original_request=request, metadata=dict(metadata or {}))
        self.add(entry)
        return entry

    def record_attempt(
        self,
        entry_id: str,
        strategy_id: str,
        approach: str,
        outcome: Union[AttemptOutcome, str],
        iteration: int,
        error: Optional[str] = None,
    ) -> bool:
        """Append an attempt. Returns False if the entry is unknown."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return False
        entry.attempts.append(AttemptRecord(
            strategy_id=strategy_id,
            approach=approach,
            outcome=AttemptOutcome(outcome),
            iteration=iteration,
            error=error,
        ))
        return True

    def record_applied_edit(self, entry_id: str, file: str, description: str) -> bool:
        """Append an applied edit. Returns False if the entry is unknown."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return False
        entry.applied_edits.append(AppliedEdit(file=file, description=description))
        return True

    def mark_succeeded(self, entry_id: str, total_iterations: int) -> bool:
        """Mark a run as succeeded."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return False
        entry.succeeded = True
        entry.total_iterations = total_iterations
        return True

    def mark_completed(self, entry_id: str, total_iterations: int) -> bool:
        """Record the iteration count of a run that did not succeed."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return False
        entry.total_iterations = total_iterations
        return True

    def delete(self, entry_id: str) -> bool:
        """Delete an entry by ID."""
        if entry_id in self._entries:
            del self._entries[entry_id]
            return True
        return False

    def clear(self) -> None:
        """Clear all entries from the store."""
        self._entries.clear()

    # Queries

    def get_entry(self, entry_id: str) -> Optional[ExecutionMemoryEntry]:
        """Get a specific entry by ID."""
        return self._entries.get(entry_id)

    def list_entries(
        self,
        limit: Optional[int] = None,
        succeeded: Optional[bool] = None,
    ) -> list[ExecutionMemoryEntry]:
        """Entries newest first, optionally filtered by outcome."""
        entries = sorted(self._entries.values(), key=lambda e: e.timestamp, reverse=True)
        if succeeded is not None:
            entries = [e for e in entries if e.succeeded == succeeded]
        if limit is not None:
            entries = entries[:limit]
        return entries

    def find_similar_successes(
        self,
        request: str,
        strategy_id: Optional[str] = None,
    ) -> list[ExecutionMemoryEntry]:
        """Find successful entries whose request resembles this one.

        Args:
            request: Request text to compare.
            strategy_id: Only entries with an attempt from this strategy.

        Returns:
            Matching entries sorted by total_iterations, descending unless
            prefer_fewer_iterations is set.
        """
        tokens = tokenize(request)
        results = []
        for entry in self._entries.values():
            if not entry.succeeded:
                continue
            similarity = jaccard_similarity(tokens, tokenize(entry.original_request))
            if similarity <= self.similarity_threshold:
                continue
            if strategy_id is not None and not entry.used_strategy(strategy_id):
                continue
            results.append(entry)

        return sorted(
            results,
            key=lambda e: e.total_iterations,
            reverse=not self.prefer_fewer_iterations,
        )

    def next_successful_attempt(
        self,
        entry_id: str,
        failed_approaches: list[str],
        candidate_ids: list[str],
    ) -> Optional[AttemptRecord]:
        """First untried successful attempt from a similar past run.

        Args:
            entry_id: The current run.
            failed_approaches: Approaches already tried in this run.
            candidate_ids: Strategies allowed to supply the approach.
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            return None

        failed = set(failed_approaches)
        allowed = set(candidate_ids)
        for success in self.find_similar_successes(entry.original_request):
            if success.id == entry_id:
                continue
            for attempt in success.successful_approaches:
                if attempt.approach not in failed and attempt.strategy_id in allowed:
                    return attempt
        return None

    def suggest_next_approach(
        self,
        entry_id: str,
        failed_approaches: list[str],
        candidate_ids: list[str],
    ) -> Optional[str]:
        """Suggest a proven approach text for the run entry_id, or None."""
        attempt = self.next_successful_attempt(entry_id, failed_approaches, candidate_ids)
        return attempt.approach if attempt else None

    def prune_memory(self, keep: Optional[int] = None) -> int:
        """Keep only the `keep` newest entries.

        Returns:
            Number of entries evicted.
        """
        keep = self.max_entries if keep is None else keep
        if len(self._entries) <= keep:
            return 0

        newest = sorted(self._entries.values(), key=lambda e: e.timestamp, reverse=True)[:max(keep, 0)]
        evicted = len(self._entries) - len(newest)
        self._entries = {e.id: e for e in newest}
        logger.debug("Pruned %d execution memory entries", evicted)
        return evicted

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics.

        Returns:
            Dictionary with:
            - total_executions: Number of entries
            - successful_executions: Entries that succeeded
            - success_rate: successful / total
            - average_iterations: Mean iterations of successful runs
            - most_common_strategies: Up to three most used strategy ids
        """
        entries = list(self._entries.values())
        successful = [e for e in entries if e.succeeded]

        counts: Counter[str] = Counter()
        for entry in entries:
            for attempt in entry.attempts:
                counts[attempt.strategy_id] += 1

        total_iterations = sum(e.total_iterations for e in successful)
        return {
            "total_executions": len(entries),
            "successful_executions": len(successful),
            "success_rate": len(successful) / len(entries) if entries else 0.0,
            "average_iterations": total_iterations / len(successful) if successful else 0.0,
            "most_common_strategies": [s for s, _ in counts.most_common(3)],
        }

    # Persistence

    def save(self) -> None:
        """Persist the store to disk atomically.

        Raises:
            MemoryStoreError: If the file cannot be written.
        """
        header = {"schema_version": SCHEMA_VERSION, "saved_at": _now(), "count": len(self._entries)}
        lines = [json.dumps(header)]
        lines.extend(json.dumps(e.to_dict()) for e in self.list_entries())
        try:
            safe_write(self.store_path, "\n".join(lines) + "\n")
        except FileSystemError as e:
            raise MemoryStoreError(f"Failed to save execution memory: {e}")

    @classmethod
    def load(cls, store_path: Optional[Path] = None, **kwargs: Any) -> ExecutionMemoryStore:
        """Load a store from disk.

        Missing files give an empty store. Corrupt lines are skipped with a
        warning.

        Raises:
            MemoryStoreError: If the file was written by a newer schema or
                cannot be read.
        """
        store = cls(store_path=store_path, **kwargs)
        if not store.store_path.exists():
            return store

        try:
            raw_lines = store.store_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise MemoryStoreError(f"Failed to read execution memory: {e}")

        header_seen = False
        for number, line in enumerate(raw_lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt line %d in %s", number, store.store_path)
                continue

            if not header_seen and isinstance(data, dict) and "schema_version" in data:
                header_seen = True
                version = data["schema_version"]
                if not isinstance(version, int) or version > SCHEMA_VERSION:
                    raise MemoryStoreError(
                        f"Unsupported execution memory schema {version!r} "
                        f"(this version reads up to {SCHEMA_VERSION})"
                    )
                continue

            try:
                entry = ExecutionMemoryEntry.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid entry on line %d in %s: %s", number, store.store_path, e)
                continue
            store._entries[entry.id] = entry

        if not header_seen and store._entries:
            logger.warning("No schema header in %s, assuming version %d", store.store_path, SCHEMA_VERSION)

        if len(store._entries) > store.max_entries:
            store.prune_memory(store.max_entries)

        return store
