"""
Error taxonomy for fixloop.

This module provides:
- FixLoopError base exception
- ProbeError for fatal verification-probe failures
- StrategyError for a fix that a strategy could not carry out
- ProtocolStateError for illegal protocol phase transitions
- MemoryStoreError for unreadable or incompatible execution memory

Only ProbeError ends a run early, and even then the protocol converts it
into a failed RunReport instead of letting it escape. StrategyError is
caught by the strategy loop and recorded as a failed attempt.
"""

from __future__ import annotations

from typing import Optional


class FixLoopError(Exception):
    """Base exception for fixloop errors."""


class ProbeError(FixLoopError):
    """Raised when the verification check cannot be prepared for a run."""

    def __init__(self, message: str, command: Optional[str] = None) -> None:
        super().__init__(message)
        self.command = command


class StrategyError(FixLoopError):
    """Raised by a strategy that cannot apply a fix."""

    def __init__(self, message: str, strategy_id: str = "") -> None:
        super().__init__(message)
        self.strategy_id = strategy_id


class ProtocolStateError(FixLoopError):
    """Raised on an illegal phase transition inside the repair protocol."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Illegal protocol transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


class MemoryStoreError(FixLoopError):
    """Raised when the execution memory file cannot be used."""

    pass
