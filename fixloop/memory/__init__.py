"""
Execution memory for fixloop.

JSONL-backed store of past repair runs used to bias strategy selection.
"""

from fixloop.memory.store import (
    AppliedEdit,
    AttemptOutcome,
    AttemptRecord,
    ExecutionMemoryEntry,
    ExecutionMemoryStore,
    jaccard_similarity,
    tokenize,
)

__all__ = [
    "AppliedEdit",
    "AttemptOutcome",
    "AttemptRecord",
    "ExecutionMemoryEntry",
    "ExecutionMemoryStore",
    "jaccard_similarity",
    "tokenize",
]
