"""Strategy for data processing, parsing and SQL problems."""

from __future__ import annotations

from fixloop.models import ErrorCategory, FixType, StrategyCapability
from fixloop.strategies.rules import RuleBasedStrategy, SuggestionRule


class DataAnalysisStrategy(RuleBasedStrategy):
    CAPABILITY = StrategyCapability(
        id="data_analysis",
        supported_categories=frozenset({
            ErrorCategory.LOGIC,
            ErrorCategory.RUNTIME,
            ErrorCategory.TYPE,
            ErrorCategory.SYNTAX,
            ErrorCategory.OTHER,
        }),
        supported_domains=frozenset({"data"}),
        base_confidence=0.75,
        iteration_budget=7,
        description="Specialized strategy for data analysis, SQL queries and data processing",
    )

    RULES = (
        SuggestionRule(r"sql error|syntax error in query|unknown column|no such table|\bselect\b",
                       "Fix SQL query syntax and structure", 0.8),
        SuggestionRule(r"sql error|syntax error in query|unknown column|no such table|\bselect\b",
                       "Add query parameter validation", 0.7, FixType.UPDATE_TYPE),
        SuggestionRule(r"\bparse|\bjson\b|\bcsv\b",
                       "Fix data parsing logic", 0.75),
        SuggestionRule(r"\bparse|\bjson\b|\bcsv\b",
                       "Add data validation helper", 0.65, FixType.ADD_FUNCTION),
        SuggestionRule(r"\bnull\b|\bundefined\b|\brequired\b|nonetype",
                       "Add null/undefined validation", 0.85, FixType.ADD_FUNCTION),
        SuggestionRule(r"\bnull\b|\bundefined\b|\brequired\b|nonetype",
                       "Add type guards for data validation", 0.8, FixType.UPDATE_TYPE),
        SuggestionRule(r"\btransform|\bmap\b|\bfilter\b",
                       "Refactor data transformation pipeline", 0.7, FixType.REFACTOR),
        SuggestionRule(r"\baverage\b|\baggregat|\bgroup\b",
                       "Implement statistical functions", 0.75, FixType.ADD_FUNCTION),
        SuggestionRule(r"\bperformance\b|\boptimi[sz]e|\bslow\b",
                       "Optimize query and data processing performance", 0.65, FixType.REFACTOR),
    )

    FALLBACK = SuggestionRule(r"", "Review and fix data handling logic", 0.6)
