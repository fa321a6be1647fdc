"""
Pattern-table driven strategies.

A RuleBasedStrategy proposes one advisory suggestion per matching
SuggestionRule. Rules are plain data so each strategy's table can be
tested on its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Optional

from fixloop.models import FixSuggestion, FixType, StrategyCapability
from fixloop.strategies.base import Strategy, StrategyContext

FILE_PATTERNS = (
    re.compile(r'File "(?P<path>[^"]+)", line \d+'),
    re.compile(r"at\s+(?:\S+\s+\()?(?P<path>[\w./\\-]+\.(?:tsx?|jsx?|mjs|cjs|vue))"),
    re.compile(r"(?P<path>[\w./\\-]+\.(?:py|tsx?|jsx?|vue|sql)):\d+"),
)

MAX_TARGET_FILES = 5


@dataclass(frozen=True)
class SuggestionRule:
    """
    One diagnostic pattern and the suggestion it produces.

    description may reference named groups of pattern, e.g. "{module}".
    source selects the text searched: diagnostic, request, codebase or
    combined (diagnostic plus request).
    """
    pattern: str
    description: str
    confidence: float
    fix_type: FixType = FixType.MODIFY_LOGIC
    source: str = "combined"


def extract_target_files(diagnostic: str) -> list[str]:
    """Pull file paths out of tracebacks and compiler output."""
    files: list[str] = []
    for pattern in FILE_PATTERNS:
        for match in pattern.finditer(diagnostic):
            path = match.group("path")
            if path not in files and "site-packages" not in path and "node_modules" not in path:
                files.append(path)
            if len(files) >= MAX_TARGET_FILES:
                return files
    return files


class RuleBasedStrategy(Strategy):
    """Strategy whose suggestions come from a class-level rule table."""

    CAPABILITY: ClassVar[StrategyCapability]
    RULES: ClassVar[tuple[SuggestionRule, ...]] = ()
    FALLBACK: ClassVar[Optional[SuggestionRule]] = None

    def capability(self) -> StrategyCapability:
        return self.CAPABILITY

    def _source_text(self, rule: SuggestionRule, context: StrategyContext) -> str:
        if rule.source == "diagnostic":
            return context.diagnostic
        if rule.source == "request":
            return context.request
        if rule.source == "codebase":
            return context.codebase_context
        return f"{context.diagnostic}\n{context.request}"

    def _suggestion(self, rule: SuggestionRule, description: str, files: list[str]) -> FixSuggestion:
        return FixSuggestion(
            strategy_id=self.CAPABILITY.id,
            description=description,
            target_files=list(files),
            confidence=rule.confidence,
            fix_type=rule.fix_type,
        )

    def propose_fixes(self, context: StrategyContext) -> list[FixSuggestion]:
        files = extract_target_files(context.diagnostic)
        suggestions: list[FixSuggestion] = []
        seen: set[str] = set()

        for rule in self.RULES:
            match = re.search(rule.pattern, self._source_text(rule, context), re.IGNORECASE)
            if not match:
                continue
            groups = {k: v for k, v in match.groupdict().items() if v is not None}
            description = rule.description.format(**groups)
            if description in seen:
                continue
            seen.add(description)
            suggestions.append(self._suggestion(rule, description, files))

        if not suggestions and self.FALLBACK is not None:
            suggestions.append(self._suggestion(self.FALLBACK, self.FALLBACK.description, files))

        return suggestions
