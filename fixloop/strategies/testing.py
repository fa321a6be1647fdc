"""Strategy for failing test suites."""

from __future__ import annotations

from fixloop.models import ErrorCategory, FixType, StrategyCapability
from fixloop.strategies.rules import RuleBasedStrategy, SuggestionRule


class TestingStrategy(RuleBasedStrategy):
    """Assertion failures, fixtures, snapshots and test discovery."""

    __test__ = False  # keep pytest from collecting this class

    CAPABILITY = StrategyCapability(
        id="testing",
        supported_categories=frozenset({ErrorCategory.TEST, ErrorCategory.LOGIC}),
        supported_domains=frozenset({"testing"}),
        base_confidence=0.8,
        iteration_budget=5,
        description="Repairs failing tests and test configuration",
    )

    RULES = (
        SuggestionRule(r"fixture ['\"](?P<fixture>\w+)['\"] not found",
                       "Add missing pytest fixture {fixture}", 0.85, FixType.ADD_FUNCTION, "diagnostic"),
        SuggestionRule(r"snapshot.*(mismatch|failed|obsolete)|obsolete snapshot",
                       "Update outdated snapshots", 0.8, FixType.UPDATE_TEST, "diagnostic"),
        SuggestionRule(r"AssertionError|assert(ion)? failed|Test failed|Expected .* to",
                       "Fix implementation to match test expectations", 0.75, FixType.MODIFY_LOGIC, "diagnostic"),
        SuggestionRule(r"AssertionError|assert(ion)? failed|Test failed|Expected .* to",
                       "Update test expectations", 0.65, FixType.UPDATE_TEST, "diagnostic"),
        SuggestionRule(r"no tests ran|collected 0 items|No tests found",
                       "Fix test discovery configuration", 0.7, FixType.REFACTOR, "diagnostic"),
        SuggestionRule(r"\bmock\b|\bpatch\b|called with",
                       "Fix mock setup to match the called interface", 0.6, FixType.UPDATE_TEST, "diagnostic"),
        SuggestionRule(r"timed? ?out|timeout",
                       "Increase test timeout or await pending async work", 0.55, FixType.UPDATE_TEST, "diagnostic"),
    )

    FALLBACK = SuggestionRule(r"", "Review failing test and implementation together", 0.5, FixType.MODIFY_LOGIC)
