"""
Strategy for session, auth and full-stack web issues.

Suggestions follow the backend, network, frontend-store trace: check what
the API returns, whether credentials travel with requests, and whether the
client store keeps the session.
"""

from __future__ import annotations

from fixloop.models import ErrorCategory, FixType, StrategyCapability
from fixloop.strategies.rules import RuleBasedStrategy, SuggestionRule


class WebDevelopmentStrategy(RuleBasedStrategy):
    CAPABILITY = StrategyCapability(
        id="web_development",
        supported_categories=frozenset({
            ErrorCategory.LOGIC,
            ErrorCategory.RUNTIME,
            ErrorCategory.TEST,
            ErrorCategory.DEPENDENCY,
        }),
        supported_domains=frozenset({"web"}),
        base_confidence=0.85,
        iteration_budget=8,
        description="Full-stack web issues: sessions, auth, UI state and middleware chains",
    )

    RULES = (
        SuggestionRule(r"hydration",
                       "Wrap component in useEffect to prevent SSR/client hydration mismatch", 0.9),
        SuggestionRule(r"\blogin\b.*\b(fail|error)|\bauth",
                       "Verify backend returns user object with all required fields", 0.85),
        SuggestionRule(r"\blogin\b.*\b(fail|error)|\bauth",
                       "Verify cookies/auth headers are sent in network requests", 0.8),
        SuggestionRule(r"\blogin\b.*\b(fail|error)|\bauth",
                       "Verify frontend store receives and persists user session", 0.8),
        SuggestionRule(r"\bblank\b|empty component",
                       "Add loading state and conditional rendering to blank component", 0.85),
        SuggestionRule(r"\bsession\b",
                       "Add session refresh hook to sync state with backend periodically", 0.8, FixType.ADD_FUNCTION),
        SuggestionRule(r"\bsession\b",
                       "Verify session storage is persisted on browser refresh", 0.75),
        SuggestionRule(r"\bcsrf\b",
                       "Include CSRF token in state-changing requests", 0.8),
        SuggestionRule(r"\bcors\b",
                       "Configure CORS to allow credentials from the frontend origin", 0.8),
        SuggestionRule(r"\bmiddleware\b",
                       "Verify middleware chain order of execution", 0.8),
        SuggestionRule(r"\bredirect",
                       "Check session before redirecting to avoid auth redirect loops", 0.75),
        SuggestionRule(r"\bbearer\b|\bjwt\b|\btoken\b",
                       "Send Authorization Bearer header with API requests", 0.8),
    )

    FALLBACK = SuggestionRule(r"", "Trace request through backend, network and frontend store", 0.6)
