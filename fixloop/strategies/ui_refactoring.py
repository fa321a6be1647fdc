"""Strategy for component rendering, hooks and UI state issues."""

from __future__ import annotations

from fixloop.models import ErrorCategory, FixType, StrategyCapability
from fixloop.strategies.rules import RuleBasedStrategy, SuggestionRule


class UIRefactoringStrategy(RuleBasedStrategy):
    CAPABILITY = StrategyCapability(
        id="ui_refactoring",
        supported_categories=frozenset({ErrorCategory.LOGIC, ErrorCategory.TYPE, ErrorCategory.RUNTIME}),
        supported_domains=frozenset({"ui"}),
        base_confidence=0.9,
        iteration_budget=6,
        description="Targeted modifications to React/Vue components",
    )

    RULES = (
        SuggestionRule(r"hydration",
                       "Wrap component in useEffect to prevent SSR/client hydration mismatch", 0.92),
        SuggestionRule(r"\bdependenc(y|ies)\b|exhaustive-deps",
                       "Fix dependency array for useEffect", 0.85),
        SuggestionRule(r"\brender|\bblank\b",
                       "Add loading state and fallback UI to render block", 0.8),
        SuggestionRule(r"\bstate\b",
                       "Add proper state update logic", 0.75),
        SuggestionRule(r"\bstale\b|\bclosure\b",
                       "Check useEffect for missing dependencies and stale closures", 0.7, FixType.REFACTOR),
    )

    FALLBACK = SuggestionRule(r"", "Review component render and state flow", 0.55)
