"""Tests for problem classification and complexity tiers."""

from __future__ import annotations

import pytest

from fixloop.classifier import (
    ProblemClassifier,
    classification_confidence,
    detect_categories,
    detect_domains,
    select_tier,
)
from fixloop.models import ComplexityTier, ErrorCategory, ProblemClassification
from fixloop.orchestrator import default_registry

FAILING_TEST = "AssertionError: Expected 'foo' but got 'bar'"


@pytest.fixture
def capabilities(config):
    return default_registry(config).capabilities()


@pytest.fixture
def classifier():
    return ProblemClassifier()


class TestDetectCategories:
    def test_lowest_rank_is_primary(self):
        categories = detect_categories("SyntaxError: invalid syntax\nTypeError: bad operand")
        assert categories[0] == ErrorCategory.TYPE
        assert ErrorCategory.SYNTAX in categories[1:]

    def test_rank_order_is_stable(self):
        text = "Cannot read properties of undefined\nAssertionError\nModuleNotFoundError: x"
        assert detect_categories(text) == [
            ErrorCategory.TEST,
            ErrorCategory.DEPENDENCY,
            ErrorCategory.RUNTIME,
        ]

    def test_data_evidence_outranks_everything(self):
        categories = detect_categories("TypeError: unsupported operand\nfix the data query")
        assert categories == [ErrorCategory.LOGIC, ErrorCategory.TYPE]

    def test_test_evidence_outranks_imports(self):
        categories = detect_categories("ImportError in test: AssertionError")
        assert categories == [ErrorCategory.TEST, ErrorCategory.DEPENDENCY]

    def test_logic_reported_once(self):
        categories = detect_categories("sql query returns the wrong result")
        assert categories == [ErrorCategory.LOGIC]

    def test_performance_before_runtime(self):
        assert detect_categories("slow page, then KeyError") == [ErrorCategory.OTHER, ErrorCategory.RUNTIME]

    def test_falls_back_to_logic(self):
        assert detect_categories("everything is on fire") == [ErrorCategory.LOGIC]

    def test_lint(self):
        assert detect_categories("eslint found 3 problems")[0] == ErrorCategory.LINT


class TestDetectDomains:
    def test_keyword_prefix_match(self):
        assert detect_domains("the login component renders blank") == ["web", "ui"]

    def test_no_domain(self):
        assert detect_domains("something broke") == []

    def test_prefix_not_infix(self):
        assert "testing" not in detect_domains("the contest page")


class TestClassify:
    def test_failing_unit_tests(self, classifier, capabilities):
        result = classifier.classify("fix the failing unit tests", FAILING_TEST, capabilities)

        assert result.primary_category == ErrorCategory.TEST
        assert result.secondary_categories == []
        assert result.domains == ["testing"]
        assert result.candidate_strategies == ["testing", "general"]
        assert select_tier("fix the failing unit tests", result) == ComplexityTier.SIMPLE

    def test_data_request_routes_as_logic(self, classifier, capabilities):
        result = classifier.classify("fix the data query", "TypeError: unsupported operand", capabilities)

        assert result.primary_category == ErrorCategory.LOGIC
        assert result.secondary_categories == [ErrorCategory.TYPE]
        assert result.candidate_strategies[0] == "data_analysis"

    def test_failing_tests_with_import_noise(self, classifier, capabilities):
        request = "fix the failing unit tests"
        result = classifier.classify(request, "ImportError in test: AssertionError", capabilities)

        assert result.primary_category == ErrorCategory.TEST
        assert result.secondary_categories == [ErrorCategory.DEPENDENCY]
        assert select_tier(request, result) == ComplexityTier.MODERATE

    def test_domain_strategy_before_general(self, classifier, capabilities):
        result = classifier.classify(
            "login fails after refresh",
            "TypeError: Cannot read properties of undefined (reading 'user')",
            capabilities,
        )
        assert result.primary_category == ErrorCategory.TYPE
        assert result.candidate_strategies == ["web_development", "general"]

    def test_higher_confidence_specialist_first(self, classifier, capabilities):
        result = classifier.classify("the login component renders blank", "", capabilities)
        assert result.candidate_strategies == ["ui_refactoring", "web_development", "general"]

    def test_planned_strategies_are_candidates(self, classifier, capabilities):
        result = classifier.classify("improve performance of the slow report", "", capabilities)
        assert result.primary_category == ErrorCategory.OTHER
        assert result.candidate_strategies == ["performance", "general"]

    def test_codebase_context_adds_domains(self, classifier, capabilities):
        result = classifier.classify(
            "fix the bug", "KeyError: 'total'", capabilities, codebase_context="pandas data pipeline"
        )
        assert "data" in result.domains
        assert result.candidate_strategies[0] == "data_analysis"

    def test_empty_capabilities_use_default(self, capabilities):
        result = ProblemClassifier("fallback").classify("anything", "", [])
        assert result.candidate_strategies == ["fallback"]

    def test_rationale_mentions_candidates(self, classifier, capabilities):
        result = classifier.classify("fix the failing unit tests", FAILING_TEST, capabilities)
        assert result.rationale.startswith("test issue")
        assert "testing, general" in result.rationale


class TestConfidence:
    def test_floor(self):
        assert classification_confidence("", 1) == 0.3

    def test_long_diagnostic_caps_at_point_nine(self):
        assert classification_confidence("x" * 5000, 1) == pytest.approx(0.9)

    def test_extra_candidates_lower_confidence(self):
        assert classification_confidence("x" * 5000, 3) == pytest.approx(0.72)

    def test_always_within_bounds(self):
        for length in (0, 10, 500, 900, 10_000):
            for count in (1, 2, 5, 12):
                assert 0.3 <= classification_confidence("x" * length, count) <= 0.95


class TestSelectTier:
    def _classification(self, secondary: int) -> ProblemClassification:
        return ProblemClassification(
            primary_category=ErrorCategory.SYNTAX,
            secondary_categories=[ErrorCategory.TYPE, ErrorCategory.TEST][:secondary],
        )

    def test_multi_strategy_wins(self):
        assert select_tier("refactor across frontend and backend") == ComplexityTier.MULTI_STRATEGY

    def test_complex_keyword(self):
        assert select_tier("refactor the auth module") == ComplexityTier.COMPLEX

    def test_two_secondary_categories(self):
        assert select_tier("fix it", self._classification(2)) == ComplexityTier.COMPLEX

    def test_one_secondary_category(self):
        assert select_tier("fix it", self._classification(1)) == ComplexityTier.MODERATE

    def test_simple(self):
        assert select_tier("fix it", self._classification(0)) == ComplexityTier.SIMPLE
        assert select_tier("fix it") == ComplexityTier.SIMPLE
