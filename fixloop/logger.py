"""
Structured event log for repair runs.

Every component that accepts a logger writes events through
``FixLoopLogger.log``. Events land in one JSON object per line under
``.fixloop/logs/<scope>-YYYY-MM-DD.jsonl`` (UTC dates) and can be read
back with ``read_logs``.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from fixloop.config import FixLoopConfig, get_config


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {LogLevel.DEBUG: 10, LogLevel.INFO: 20, LogLevel.WARN: 30, LogLevel.ERROR: 40}


def _utc_date() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class FixLoopLogger:
    """
    Append-only JSONL event logger.

    Entries carry ``timestamp``, ``level``, ``event_type``, ``scope`` and
    ``data``. Inside ``run_context`` they also carry ``run_id``. Events
    below ``min_level`` are dropped.
    """

    def __init__(
        self,
        scope: str = "runs",
        config: Optional[FixLoopConfig] = None,
        min_level: Union[str, LogLevel] = LogLevel.DEBUG,
    ) -> None:
        self.scope = scope
        self.min_level = LogLevel(min_level)
        self._config = config
        self._run_ids: list[str] = []

    @property
    def config(self) -> FixLoopConfig:
        if self._config is None:
            self._config = get_config()
        return self._config

    @property
    def run_id(self) -> Optional[str]:
        return self._run_ids[-1] if self._run_ids else None

    def log_path(self, date: Optional[str] = None) -> Path:
        """Path of the log file for ``date`` (today when omitted)."""
        return self.config.logs_path / f"{self.scope}-{date or _utc_date()}.jsonl"

    def log(
        self,
        event_type: str,
        data: Optional[dict[str, Any]] = None,
        level: Union[str, LogLevel] = LogLevel.INFO,
    ) -> None:
        """
        Append one event.

        Args:
            event_type: Short event name, e.g. "probe_start" or "strategy_gap".
            data: JSON-serializable payload; non-serializable values are
                written with ``str()``.
            level: One of the ``LogLevel`` values.
        """
        level = LogLevel(level)
        if level.severity < self.min_level.severity:
            return

        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "event_type": event_type,
            "scope": self.scope,
            "data": dict(data) if data else {},
        }
        if self.run_id:
            entry["run_id"] = self.run_id

        path = self.log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def debug(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.DEBUG)

    def info(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.INFO)

    def warn(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.WARN)

    def error(self, event_type: str, data: Optional[dict[str, Any]] = None) -> None:
        self.log(event_type, data, LogLevel.ERROR)

    @contextmanager
    def run_context(self, run_id: str) -> Iterator[FixLoopLogger]:
        """
        Tag every event logged inside the block with ``run_id``.

        Emits ``run_start`` on entry and ``run_end`` on exit. Contexts nest;
        the innermost run id wins.
        """
        self._run_ids.append(run_id)
        self.info("run_start", {"run_id": run_id})
        try:
            yield self
        finally:
            self.info("run_end", {"run_id": run_id})
            self._run_ids.pop()

    def _iter_entries(self, path: Path) -> Iterator[dict[str, Any]]:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue

    def read_logs(
        self,
        date: Optional[str] = None,
        level: Optional[Union[str, LogLevel]] = None,
        event_type: Optional[str] = None,
        run_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Read one day's events, oldest first.

        Args:
            date: YYYY-MM-DD; defaults to today (UTC).
            level: Keep only events at exactly this level.
            event_type: Keep only events of this type.
            run_id: Keep only events tagged with this run.
            limit: Stop after this many matches.
        """
        path = self.log_path(date)
        if not path.exists():
            return []

        wanted_level = LogLevel(level).value if level else None
        matches: list[dict[str, Any]] = []
        for entry in self._iter_entries(path):
            if wanted_level and entry.get("level") != wanted_level:
                continue
            if event_type and entry.get("event_type") != event_type:
                continue
            if run_id and entry.get("run_id") != run_id:
                continue
            matches.append(entry)
            if limit and len(matches) >= limit:
                break
        return matches


_loggers: dict[str, FixLoopLogger] = {}


def get_logger(scope: str = "runs", config: Optional[FixLoopConfig] = None) -> FixLoopLogger:
    """Shared logger for ``scope``, created on first use."""
    if scope not in _loggers:
        _loggers[scope] = FixLoopLogger(scope, config)
    return _loggers[scope]


def clear_logger_cache() -> None:
    _loggers.clear()
