"""
Repair strategies for fixloop.

Every strategy implements the Strategy contract from strategies.base;
the built-ins are table driven and registered by
orchestrator.default_registry().
"""

from fixloop.strategies.base import (
    Strategy,
    StrategyAttempt,
    StrategyContext,
    StrategyResult,
    suggestion_score,
)
from fixloop.strategies.command import CommandStrategy
from fixloop.strategies.data_analysis import DataAnalysisStrategy
from fixloop.strategies.general import GeneralStrategy
from fixloop.strategies.rules import RuleBasedStrategy, SuggestionRule, extract_target_files
from fixloop.strategies.testing import TestingStrategy
from fixloop.strategies.ui_refactoring import UIRefactoringStrategy
from fixloop.strategies.web_development import WebDevelopmentStrategy

__all__ = [
    "Strategy",
    "StrategyAttempt",
    "StrategyContext",
    "StrategyResult",
    "suggestion_score",
    "RuleBasedStrategy",
    "SuggestionRule",
    "extract_target_files",
    "CommandStrategy",
    "DataAnalysisStrategy",
    "GeneralStrategy",
    "TestingStrategy",
    "UIRefactoringStrategy",
    "WebDevelopmentStrategy",
]
