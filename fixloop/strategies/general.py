"""General purpose strategy built on common error-message patterns."""

from __future__ import annotations

from fixloop.models import ErrorCategory, FixType, StrategyCapability
from fixloop.strategies.rules import RuleBasedStrategy, SuggestionRule


class GeneralStrategy(RuleBasedStrategy):
    """Handles every category in every domain; the default fallback."""

    CAPABILITY = StrategyCapability(
        id="general",
        supported_categories=frozenset(ErrorCategory),
        supported_domains=frozenset({"*"}),
        base_confidence=0.5,
        iteration_budget=5,
        description="General purpose strategy for common error messages",
    )

    RULES = (
        SuggestionRule(r"SyntaxError|Unexpected token|invalid syntax", "Fix syntax error",
                       0.6, FixType.FIX_SYNTAX, "diagnostic"),
        SuggestionRule(r"Cannot find module ['\"](?P<module>[^'\"]+)['\"]", "Add import for {module}",
                       0.8, FixType.ADD_IMPORT, "diagnostic"),
        SuggestionRule(r"Cannot find module ['\"](?P<module>[^'\"]+)['\"]", "Install {module} package",
                       0.7, FixType.ADD_DEPENDENCY, "diagnostic"),
        SuggestionRule(r"No module named ['\"](?P<module>[^'\"]+)['\"]", "Install {module} package",
                       0.7, FixType.ADD_DEPENDENCY, "diagnostic"),
        SuggestionRule(r"ReferenceError", "Add missing import or declaration",
                       0.6, FixType.ADD_IMPORT, "diagnostic"),
        SuggestionRule(r"Property ['\"]?\w+['\"]? does not exist on type", "Update type definitions",
                       0.7, FixType.UPDATE_TYPE, "diagnostic"),
        SuggestionRule(r"TypeError", "Fix type mismatch",
                       0.55, FixType.UPDATE_TYPE, "diagnostic"),
        SuggestionRule(r"is not defined|is not a function", "Fix logic error",
                       0.5, FixType.MODIFY_LOGIC, "diagnostic"),
        SuggestionRule(r"AssertionError|Test failed|Expected .* to", "Update test expectations",
                       0.6, FixType.UPDATE_TEST, "diagnostic"),
        SuggestionRule(r"AssertionError|Test failed|Expected .* to",
                       "Fix implementation to match test expectations",
                       0.7, FixType.MODIFY_LOGIC, "diagnostic"),
        SuggestionRule(r"Cannot read propert(y|ies)|NoneType", "Fix runtime null/undefined access",
                       0.6, FixType.MODIFY_LOGIC, "diagnostic"),
    )

    FALLBACK = SuggestionRule(r"", "Review the failing check output and fix the reported problem", 0.4)
