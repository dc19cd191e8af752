"""
Query Intent Classifier

Maps a raw query string to one Intent with ordered keyword rules.
Pure and deterministic: no I/O, first matching rule wins, General otherwise.

Rule order:
1. Tutorial        - "how to", "tutorial", "install", ...
2. Troubleshooting - "fix", "debug", "not working", ...; bare "error" words
                     only when no programming-ecosystem term is present
3. Comparison      - " vs ", "compare", "difference between", ...
4. Technical       - programming-ecosystem terms, or two words such as
                     "class" and "method" that are only technical together
5. News            - freshness markers or a recent year
6. Academic        - "research", "paper", "journal", ...
7. Shopping        - "best", "buy", "price", ...
8. Local           - "near me", "nearby", "directions to", ...
9. Factual         - leading interrogative or "define"
"""

import logging
from typing import Tuple

from .models import Intent
from .text_utils import contains_phrase, has_freshness_marker, tokenize

logger = logging.getLogger("websearch.query_classifier")


TUTORIAL_MARKERS: Tuple[str, ...] = (
    "how to", "how do i", "how can i", "tutorial", "install", "installation",
    "installing", "setup", "set up", "getting started", "step by step",
    "guide", "learn", "beginner", "walkthrough",
)

TROUBLESHOOTING_MARKERS: Tuple[str, ...] = (
    "fix", "fixing", "debug", "debugging", "troubleshoot", "troubleshooting",
    "not working", "doesn't work", "does not work", "crash", "crashes",
    "crashing", "fails", "failing", "broken", "won't start", "stopped working",
)

# Only count as troubleshooting when the query is not about code
ERROR_MARKERS: Tuple[str, ...] = (
    "error", "errors", "exception", "bug", "issue", "problem", "warning",
)

COMPARISON_MARKERS: Tuple[str, ...] = (
    "vs", "vs.", "versus", "compare", "comparison", "compared to",
    "difference between", "differences between", "better than",
    "alternatives to", "alternative to",
)

# Names that almost never mean anything but software
ECOSYSTEM_TERMS: Tuple[str, ...] = (
    "rust", "python", "javascript", "typescript", "golang", "go lang",
    "c++", "c#", "kotlin", "scala", "haskell", "php", "nodejs", "node.js", "npm",
    "pip install", "rustc", "django", "flask", "fastapi", "vue", "vuejs",
    "reactjs", "docker", "kubernetes", "k8s", "terraform", "git", "github",
    "linux", "regex", "json", "yaml", "sql", "postgres", "postgresql",
    "mysql", "sqlite", "mongodb", "redis", "api", "sdk", "http", "async",
    "compiler", "stack trace", "segfault", "borrow checker", "webpack", "cli",
)

# Ordinary English words too; technical only alongside another technical term
AMBIGUOUS_TECHNICAL_TERMS: Tuple[str, ...] = (
    "java", "swift", "ruby", "node", "pip", "cargo", "crate", "react",
    "angular", "spring", "bash", "shell", "await", "runtime", "function",
    "method", "class", "library", "framework", "syntax", "algorithm",
    "programming", "code", "lifetime",
)

ACADEMIC_MARKERS: Tuple[str, ...] = (
    "research", "paper", "papers", "study", "studies", "journal", "academic",
    "thesis", "dissertation", "arxiv", "peer-reviewed", "peer reviewed",
    "scholarly", "citation", "meta-analysis", "literature review",
)

SHOPPING_MARKERS: Tuple[str, ...] = (
    "best", "buy", "price", "prices", "cheap", "cheapest", "deal", "deals",
    "discount", "review", "reviews", "cost", "purchase", "for sale",
)

LOCAL_MARKERS: Tuple[str, ...] = (
    "near me", "nearby", "directions to", "closest", "in my area",
    "open near", "local",
)

FACTUAL_LEADERS: Tuple[str, ...] = (
    "what", "who", "when", "where", "why", "which", "whose", "define",
    "definition",
)


def _matches_any(query: str, markers: Tuple[str, ...]) -> bool:
    return any(contains_phrase(query, m) for m in markers)


def has_technical_terms(query: str) -> bool:
    if _matches_any(query, ECOSYSTEM_TERMS):
        return True
    ambiguous = [t for t in AMBIGUOUS_TECHNICAL_TERMS if contains_phrase(query, t)]
    return len(ambiguous) >= 2


def classify_query_intent(query: str) -> Intent:
    """
    Classify a query into an Intent.

    Args:
        query: Raw query text

    Returns:
        The first Intent whose rule matches, General if none do
    """
    q = (query or "").strip().lower()
    if not q:
        return Intent.GENERAL

    technical = has_technical_terms(q)

    if _matches_any(q, TUTORIAL_MARKERS):
        intent = Intent.TUTORIAL
    elif _matches_any(q, TROUBLESHOOTING_MARKERS) or (
        not technical and _matches_any(q, ERROR_MARKERS)
    ):
        intent = Intent.TROUBLESHOOTING
    elif _matches_any(q, COMPARISON_MARKERS):
        intent = Intent.COMPARISON
    elif technical:
        intent = Intent.TECHNICAL
    elif has_freshness_marker(q):
        intent = Intent.NEWS
    elif _matches_any(q, ACADEMIC_MARKERS):
        intent = Intent.ACADEMIC
    elif _matches_any(q, SHOPPING_MARKERS):
        intent = Intent.SHOPPING
    elif _matches_any(q, LOCAL_MARKERS):
        intent = Intent.LOCAL
    elif tokenize(q) and tokenize(q)[0] in FACTUAL_LEADERS:
        intent = Intent.FACTUAL
    else:
        intent = Intent.GENERAL

    logger.debug(f"Classified '{query[:60]}' as {intent.value}")
    return intent
