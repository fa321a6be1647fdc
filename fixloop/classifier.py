"""
Problem classification for fixloop.

Maps a repair request plus the latest diagnostic text to an error category
and an ordered list of candidate strategies. Matching is driven by the
declarative rule tables below, evaluated in ascending rank:

Categories: data/query evidence (logic) < test < type < syntax < dependency
< build < lint < other (performance) < runtime < generic logic. The lowest
ranked match is the primary category; logic is also the fallback when
nothing matches.

Domains: web (session/auth) < ui < data < testing < architecture
< performance < security. Domain-specific strategies are tried before
general ones, and lower ranked domains before higher ranked ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from fixloop.models import (
    ComplexityTier,
    ErrorCategory,
    ProblemClassification,
    StrategyCapability,
)


@dataclass(frozen=True)
class CategoryRule:
    """Pattern list that assigns one error category."""
    rank: int
    category: ErrorCategory
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class DomainRule:
    """Keyword list that detects one problem domain."""
    rank: int
    domain: str
    keywords: tuple[str, ...]


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    # Data and query evidence is a logic problem, and outranks everything else.
    CategoryRule(1, ErrorCategory.LOGIC, (
        r"\bdata\b",
        r"\bquery\b",
        r"\bsql\b",
    )),
    CategoryRule(2, ErrorCategory.TEST, (
        r"assertionerror",
        r"assert(ion)? failed",
        r"test failed",
        r"expected .* to ",
        r"\bexpect\(",
        r"\btests?\b",
        r"\bpytest\b",
    )),
    CategoryRule(3, ErrorCategory.TYPE, (
        r"typeerror",
        r"property .* does not exist on type",
        r"incompatible types?",
        r"typescript",
        r"\bmypy\b",
        r"\btypes?\b",
    )),
    CategoryRule(4, ErrorCategory.SYNTAX, (
        r"syntaxerror",
        r"syntax error",
        r"unexpected token",
        r"invalid syntax",
        r"indentationerror",
        r"unexpected eof",
        r"\bsyntax\b",
    )),
    CategoryRule(5, ErrorCategory.DEPENDENCY, (
        r"cannot find module",
        r"modulenotfounderror",
        r"no module named",
        r"importerror",
        r"referenceerror",
        r"\bimports?\b",
        r"\bdependenc",
    )),
    CategoryRule(6, ErrorCategory.BUILD, (
        r"build failed",
        r"\bbuild\b",
        r"\bcompil",
        r"\bwebpack\b",
    )),
    CategoryRule(7, ErrorCategory.LINT, (
        r"\blint",
        r"eslint",
        r"\bruff\b",
        r"flake8",
        r"prettier",
    )),
    CategoryRule(8, ErrorCategory.OTHER, (
        r"\bperformance\b",
        r"\bslow\b",
        r"memory leak",
    )),
    CategoryRule(9, ErrorCategory.RUNTIME, (
        r"cannot read propert",
        r"nonetype",
        r"attributeerror",
        r"keyerror",
        r"indexerror",
        r"zerodivisionerror",
        r"\bnull\b",
        r"\bundefined\b",
    )),
    CategoryRule(10, ErrorCategory.LOGIC, (
        r"is not defined",
        r"is not a function",
        r"\blogic\b",
        r"wrong (result|output|value)",
        r"\bincorrect\b",
    )),
)

DEFAULT_CATEGORY = ErrorCategory.LOGIC

DOMAIN_RULES: tuple[DomainRule, ...] = (
    DomainRule(1, "web", (
        "session", "login", "auth", "cookie", "bearer", "token",
        "nextauth", "express", "nestjs", "fastapi", "django",
        "middleware", "redirect", "csrf", "cors", "credential",
        "hydration", "useeffect", "usestate", "context", "redux", "zustand",
    )),
    DomainRule(2, "ui", (
        "component", "render", "blank", "display", "hook", "state",
        "react", "vue", "jsx", "tsx",
    )),
    DomainRule(3, "data", ("data", "query", "sql", "parse", "transform", "analysis")),
    DomainRule(4, "testing", ("test",)),
    DomainRule(5, "architecture", ("architecture", "structure", "refactor", "design")),
    DomainRule(6, "performance", ("performance", "optimize", "fast", "slow")),
    DomainRule(7, "security", ("security", "vulnerable", "encrypt")),
)

MULTI_STRATEGY_PATTERNS: tuple[str, ...] = (
    r"\bmultiple\b",
    r"\bseveral\b",
    r"\bacross\b",
    r"full[- ]stack",
    r"end[- ]to[- ]end",
    r"\bmulti[- ]",
    r"frontend and backend",
)

COMPLEX_PATTERNS: tuple[str, ...] = (
    r"architect",
    r"\brefactor",
    r"\bredesign",
    r"\bmigrat",
    r"\brestructur",
    r"\bentire\b",
    r"\bcodebase\b",
)

_DOMAIN_RANK = {rule.domain: rule.rank for rule in DOMAIN_RULES}


def _matches_any(text: str, patterns: Sequence[str]) -> bool:
    """Check if text matches any of the regex patterns."""
    return any(re.search(pattern, text) for pattern in patterns)


def detect_categories(text: str) -> list[ErrorCategory]:
    """
    Return every matched category in rank order.

    Falls back to [logic] when no rule matches.
    """
    lower = text.lower()
    matched: list[ErrorCategory] = []
    for rule in sorted(CATEGORY_RULES, key=lambda r: r.rank):
        if rule.category not in matched and _matches_any(lower, rule.patterns):
            matched.append(rule.category)
    return matched or [DEFAULT_CATEGORY]


def detect_domains(text: str) -> list[str]:
    """Return every matched domain in rank order."""
    lower = text.lower()
    found = []
    for rule in sorted(DOMAIN_RULES, key=lambda r: r.rank):
        if any(re.search(r"\b" + re.escape(keyword), lower) for keyword in rule.keywords):
            found.append(rule.domain)
    return found


def classification_confidence(diagnostic: str, candidate_count: int) -> float:
    """
    Heuristic confidence in a classification.

    Longer diagnostics raise it and each extra candidate lowers it by 10%.
    """
    confidence = min(0.9, len(diagnostic) / 1000)
    confidence *= 1 - 0.1 * (max(candidate_count, 1) - 1)
    return max(0.3, min(0.95, confidence))


class ProblemClassifier:
    """
    Classifies failures and ranks the strategies that may repair them.

    Stateless; the capability list is passed in on every call.
    """

    def __init__(self, default_strategy_id: str = "general") -> None:
        self.default_strategy_id = default_strategy_id

    def classify(
        self,
        request_text: str,
        diagnostic_text: str,
        capabilities: Sequence[StrategyCapability],
        codebase_context: str = "",
    ) -> ProblemClassification:
        """
        Classify a failure.

        Args:
            request_text: The user's repair request.
            diagnostic_text: Latest diagnostic from the verification check.
            capabilities: Registered strategy capabilities, in registration order.
            codebase_context: Optional free text describing the codebase.

        Returns:
            ProblemClassification with a non-empty candidate list.
        """
        categories = detect_categories(f"{diagnostic_text}\n{request_text}")
        primary = categories[0]
        secondary = categories[1:]
        domains = detect_domains(f"{request_text}\n{codebase_context}")

        candidates = self._select_candidates({primary, *secondary}, domains, capabilities)
        if not candidates:
            candidates = [self.default_strategy_id]

        confidence = classification_confidence(diagnostic_text, len(candidates))
        rationale = (
            f"{primary.value} issue"
            + (f" (also {', '.join(c.value for c in secondary)})" if secondary else "")
            + (f" in {', '.join(domains)} domain" if domains else "")
            + f", likely solvable by {', '.join(candidates)}"
        )

        return ProblemClassification(
            primary_category=primary,
            secondary_categories=secondary,
            candidate_strategies=candidates,
            confidence=confidence,
            rationale=rationale,
            domains=domains,
        )

    def _select_candidates(
        self,
        categories: set[ErrorCategory],
        domains: list[str],
        capabilities: Sequence[StrategyCapability],
    ) -> list[str]:
        domain_set = set(domains)
        matching = [
            (position, cap)
            for position, cap in enumerate(capabilities)
            if cap.handles_category(categories) and cap.handles_domain(domain_set)
        ]

        def sort_key(item: tuple[int, StrategyCapability]) -> tuple:
            position, cap = item
            matched_ranks = [_DOMAIN_RANK.get(d, 99) for d in cap.supported_domains & domain_set]
            domain_rank = min(matched_ranks) if matched_ranks else 99
            return (cap.is_general, -cap.base_confidence, domain_rank, position)

        return [cap.id for _, cap in sorted(matching, key=sort_key)]


def select_tier(
    request_text: str,
    classification: Optional[ProblemClassification] = None,
) -> ComplexityTier:
    """
    Pick the complexity tier for a run.

    Decided once from the initial classification and never re-evaluated.
    """
    lower = request_text.lower()
    secondary_count = len(classification.secondary_categories) if classification else 0

    if _matches_any(lower, MULTI_STRATEGY_PATTERNS):
        return ComplexityTier.MULTI_STRATEGY
    if _matches_any(lower, COMPLEX_PATTERNS) or secondary_count >= 2:
        return ComplexityTier.COMPLEX
    if secondary_count == 1:
        return ComplexityTier.MODERATE
    return ComplexityTier.SIMPLE
