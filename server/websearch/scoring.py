"""
Result Scoring, Deduplication and Diversification

final = w_rel*relevance + w_auth*authority + w_qual*quality
      + w_boost*intent_boost + w_fresh*freshness

- relevance: stemmed keyword overlap between the query and title/snippet,
  title-weighted, times an intent multiplier, plus an exact-phrase bonus
- authority: per-domain base score modulated by intent and query markers
- quality: title/snippet length and URL shape heuristics
- freshness: year tokens and path hints in the URL
- intent_boost: how well the source/content type fits the intent

Deduplication is first-seen-wins on URL host+path segment similarity (> 0.8) or
title word Jaccard (> 0.9). Diversification caps results per domain.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from .models import Intent, SearchResult
from .text_utils import (
    extract_keywords,
    find_years,
    has_freshness_marker,
    normalize_title,
    normalize_url,
)

logger = logging.getLogger("websearch.scoring")

URL_DUPLICATE_THRESHOLD = 0.8
TITLE_DUPLICATE_THRESHOLD = 0.9


@dataclass
class ScoringWeights:
    """Weights of the composite score; they should sum to 1."""
    relevance: float = 0.35
    authority: float = 0.25
    quality: float = 0.20
    intent_boost: float = 0.15
    freshness: float = 0.05

    @property
    def total(self) -> float:
        return self.relevance + self.authority + self.quality + self.intent_boost + self.freshness

    def normalized(self) -> "ScoringWeights":
        """Rescale so the weights sum to 1 (final scores stay in [0, 1])"""
        total = self.total
        if total <= 0:
            return ScoringWeights()
        if abs(total - 1.0) < 1e-9:
            return self
        return ScoringWeights(
            relevance=self.relevance / total,
            authority=self.authority / total,
            quality=self.quality / total,
            intent_boost=self.intent_boost / total,
            freshness=self.freshness / total,
        )

    @classmethod
    def from_settings(cls, settings) -> "ScoringWeights":
        return cls(
            relevance=settings.weight_relevance,
            authority=settings.weight_authority,
            quality=settings.weight_quality,
            intent_boost=settings.weight_intent_boost,
            freshness=settings.weight_freshness,
        ).normalized()


# ============================================
# DOMAIN AUTHORITY
# ============================================

# First substring match wins
DOMAIN_AUTHORITY: Tuple[Tuple[str, float], ...] = (
    ("ncbi.nlm.nih.gov", 0.90),
    ("docs.python.org", 0.85),
    ("doc.rust-lang.org", 0.85),
    ("wikipedia.org", 0.85),
    ("semanticscholar.org", 0.85),
    ("arxiv.org", 0.85),
    ("nature.com", 0.85),
    ("developer.mozilla.org", 0.80),
    ("stackoverflow.com", 0.80),
    ("rust-lang.org", 0.80),
    ("python.org", 0.80),
    ("nodejs.org", 0.80),
    ("docs.rs", 0.80),
    ("sciencedirect.com", 0.80),
    ("stackexchange.com", 0.78),
    ("superuser.com", 0.75),
    ("serverfault.com", 0.75),
    ("askubuntu.com", 0.75),
    ("github.com", 0.75),
    ("w3.org", 0.75),
    ("mozilla.org", 0.75),
    ("gitlab.com", 0.70),
    ("readthedocs.io", 0.70),
    ("reuters.com", 0.70),
    ("apnews.com", 0.70),
    ("bbc.co", 0.70),
    ("cnn.com", 0.70),
    ("nytimes.com", 0.70),
    ("reddit.com", 0.65),
    ("medium.com", 0.60),
    ("dev.to", 0.60),
    ("blogspot.", 0.30),
    ("wordpress.", 0.30),
    ("pinterest.", 0.20),
)

ENCYCLOPEDIA_DOMAINS = ("wikipedia.org",)
QA_DOMAINS = ("stackoverflow.com", "stackexchange.com", "superuser.com", "serverfault.com", "askubuntu.com")
CODE_HOST_DOMAINS = ("github.com", "gitlab.com")
DOCS_DOMAINS = (
    "docs.python.org", "doc.rust-lang.org", "docs.rs", "developer.mozilla.org",
    "readthedocs.io", "nodejs.org", "rust-lang.org", "python.org", "w3.org",
)
SCHOLARLY_DOMAINS = ("semanticscholar.org", "arxiv.org", "nature.com", "sciencedirect.com", "ncbi.nlm.nih.gov")
NEWS_DOMAINS = ("reuters.com", "apnews.com", "bbc.co", "cnn.com", "nytimes.com")
DISCUSSION_DOMAINS = ("reddit.com",)
BLOG_DOMAINS = ("medium.com", "dev.to", "blogspot.", "wordpress.")


def _domain_in(domain: str, patterns: Sequence[str]) -> bool:
    return any(p in domain for p in patterns)


def base_authority(domain: str) -> float:
    """Static trust weight of a domain before intent/query modifiers"""
    domain = domain.lower()
    if "spam" in domain or domain.startswith("ad.") or domain.startswith("ads."):
        return 0.10
    for pattern, score in DOMAIN_AUTHORITY:
        if pattern in domain:
            return score
    if domain.endswith(".gov") or ".gov." in domain:
        return 0.90
    if domain.endswith(".edu") or ".ac." in domain:
        return 0.85
    return 0.50


def infer_content_type(domain: str, url: str = "") -> str:
    """Coarse content type used by relevance multipliers and intent boosts"""
    domain = domain.lower()
    path = url.lower()
    if _domain_in(domain, QA_DOMAINS):
        return "qa"
    if _domain_in(domain, CODE_HOST_DOMAINS):
        return "repository"
    if _domain_in(domain, ENCYCLOPEDIA_DOMAINS):
        return "encyclopedia"
    if _domain_in(domain, SCHOLARLY_DOMAINS) or domain.endswith(".edu"):
        return "paper"
    if _domain_in(domain, DOCS_DOMAINS) or domain.startswith("docs.") or "/docs/" in path or "/documentation" in path:
        return "documentation"
    if _domain_in(domain, DISCUSSION_DOMAINS) or "forum" in domain:
        return "discussion"
    if _domain_in(domain, NEWS_DOMAINS) or "/news/" in path:
        return "news"
    return "article"


# ============================================
# SIMILARITY
# ============================================

def url_segments(url: str) -> List[str]:
    """Host followed by the non-empty path segments of the normalized URL"""
    parts = urlsplit(normalize_url(url))
    segments = [parts.netloc] + [s for s in parts.path.split("/") if s]
    if parts.query:
        segments[-1] = f"{segments[-1]}?{parts.query}"
    return segments


def url_similarity(url_a: str, url_b: str) -> float:
    """Leading segment overlap (host, then path) of the normalized URLs"""
    parts_a = url_segments(url_a)
    parts_b = url_segments(url_b)
    if parts_a == parts_b:
        return 1.0
    common = 0
    for seg_a, seg_b in zip(parts_a, parts_b):
        if seg_a != seg_b:
            break
        common += 1
    return common / max(len(parts_a), len(parts_b))



def title_similarity(title_a: str, title_b: str) -> float:
    """Word-level Jaccard similarity of the normalized titles"""
    words_a = set(normalize_title(title_a).split())
    words_b = set(normalize_title(title_b).split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def is_duplicate(a: SearchResult, b: SearchResult) -> bool:
    return (
        url_similarity(a.url, b.url) > URL_DUPLICATE_THRESHOLD
        or title_similarity(a.title, b.title) > TITLE_DUPLICATE_THRESHOLD
    )


def deduplicate(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Drop near-duplicates; the first-seen result wins"""
    unique: List[SearchResult] = []
    for result in results:
        if not any(is_duplicate(result, kept) for kept in unique):
            unique.append(result)
    if len(unique) < len(results):
        logger.debug(f"Deduplicated {len(results)} -> {len(unique)} results")
    return unique


def sort_results(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Descending final score, then backend priority, then insertion order"""
    return sorted(results, key=lambda r: (-r.final_score, -r.source_priority))


def diversify(
    results: Sequence[SearchResult],
    target: int,
    per_domain_cap: int = 3,
) -> List[SearchResult]:
    """
    Greedy per-domain cap over score-sorted results.

    Args:
        results: Results already in final order
        target: Maximum number of results to keep
        per_domain_cap: Maximum results from one domain

    Returns:
        At most `target` results, no domain more than `per_domain_cap` times
    """
    selected: List[SearchResult] = []
    per_domain = {}
    for result in results:
        if len(selected) >= target:
            break
        domain = result.source_domain.lower()
        if per_domain.get(domain, 0) >= per_domain_cap:
            continue
        per_domain[domain] = per_domain.get(domain, 0) + 1
        selected.append(result)
    return selected


# ============================================
# SCORER
# ============================================

class ResultScorer:
    """Computes every score field of a SearchResult in place."""

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.weights = (weights or ScoringWeights()).normalized()
        self._now = now

    # ---------- component scores ----------

    def relevance(self, query: str, result: SearchResult, intent: Intent) -> float:
        query_keywords = extract_keywords(query)
        title = result.title or ""
        snippet = result.snippet or ""

        score = 0.0
        if query_keywords:
            title_keywords = extract_keywords(title)
            all_keywords = title_keywords | extract_keywords(snippet)
            title_overlap = len(query_keywords & title_keywords) / len(query_keywords)
            overall_overlap = len(query_keywords & all_keywords) / len(query_keywords)
            score = 0.6 * title_overlap + 0.4 * overall_overlap

        score *= self._relevance_multiplier(result, intent)

        phrase = " ".join(query.lower().split())
        if len(phrase) > 3:
            if phrase in title.lower():
                score += 0.3
            elif phrase in snippet.lower():
                score += 0.15

        return min(1.0, score)

    def _relevance_multiplier(self, result: SearchResult, intent: Intent) -> float:
        title = result.title.lower()
        if intent in (Intent.TECHNICAL, Intent.TROUBLESHOOTING) and result.content_type in (
            "qa", "documentation", "repository"
        ):
            return 1.3
        if intent == Intent.TUTORIAL and any(m in title for m in ("tutorial", "guide", "how to", "step")):
            return 1.2
        if intent == Intent.COMPARISON and any(m in title for m in (" vs", "versus", "compar", "differen")):
            return 1.2
        if intent == Intent.ACADEMIC and result.content_type == "paper":
            return 1.2
        return 1.0

    def authority(self, domain: str, intent: Intent, query: str = "") -> float:
        domain = domain.lower()
        score = base_authority(domain)
        encyclopedia = _domain_in(domain, ENCYCLOPEDIA_DOMAINS)
        qa_or_code = _domain_in(domain, QA_DOMAINS + CODE_HOST_DOMAINS)
        docs = _domain_in(domain, DOCS_DOMAINS) or domain.startswith("docs.")

        if intent in (Intent.TECHNICAL, Intent.TROUBLESHOOTING):
            if qa_or_code:
                score *= 1.25 if intent == Intent.TROUBLESHOOTING else 1.2
            elif docs:
                score *= 1.1
            elif encyclopedia:
                score *= 0.8
            elif intent == Intent.TROUBLESHOOTING and _domain_in(domain, DISCUSSION_DOMAINS):
                score *= 1.1
        elif intent == Intent.TUTORIAL:
            if encyclopedia:
                score *= 0.6
            elif docs:
                score *= 1.15
            elif _domain_in(domain, BLOG_DOMAINS):
                score *= 1.2
        elif intent == Intent.NEWS:
            if encyclopedia:
                score *= 0.6
            elif _domain_in(domain, NEWS_DOMAINS):
                score *= 1.3
            elif _domain_in(domain, DISCUSSION_DOMAINS):
                score *= 1.1
        elif intent == Intent.ACADEMIC:
            if _domain_in(domain, SCHOLARLY_DOMAINS) or domain.endswith(".edu"):
                score *= 1.15
            elif encyclopedia:
                score *= 1.05
            elif _domain_in(domain, DISCUSSION_DOMAINS):
                score *= 0.6
        elif intent == Intent.COMPARISON:
            if _domain_in(domain, DISCUSSION_DOMAINS):
                score *= 1.2
            elif encyclopedia:
                score *= 0.9
        elif intent == Intent.SHOPPING:
            if _domain_in(domain, DISCUSSION_DOMAINS):
                score *= 1.1
            elif encyclopedia:
                score *= 0.7
        elif intent == Intent.FACTUAL:
            if encyclopedia or domain.endswith(".gov") or domain.endswith(".edu"):
                score *= 1.1

        if query and encyclopedia:
            if has_freshness_marker(query):
                score *= 0.6
            if "how to" in query.lower():
                score *= 0.5

        return max(0.1, min(1.0, score))

    def quality(self, result: SearchResult) -> float:
        score = 0.5
        if 10 <= len(result.title) <= 100:
            score += 0.1
        snippet_len = len(result.snippet or "")
        if 50 <= snippet_len <= 300:
            score += 0.2
        elif snippet_len > 300:
            score += 0.1
        if len(result.url) < 100 and "?" not in result.url:
            score += 0.1
        if result.url.startswith("https://"):
            score += 0.1
        return min(1.0, score)

    def freshness(self, url: str) -> float:
        path = url.lower()
        current_year = self._now().year
        years = [y for y in find_years(path) if y <= current_year]
        if years:
            age = current_year - max(years)
            if age == 0:
                return 1.0
            if age == 1:
                return 0.8
            if age == 2:
                return 0.6
            return 0.4
        if "news" in path or "blog" in path:
            return 0.7
        if "documentation" in path or "manual" in path or "/docs" in path:
            return 0.5
        return 0.6

    def intent_boost(self, result: SearchResult, intent: Intent) -> float:
        domain = result.source_domain.lower()
        text = f"{result.title} {result.url}".lower()
        content_type = result.content_type or infer_content_type(domain, result.url)

        if intent == Intent.ACADEMIC:
            aligned = content_type in ("paper", "encyclopedia") or domain.endswith(".edu")
            return 1.0 if aligned else 0.5
        if intent in (Intent.TECHNICAL, Intent.TROUBLESHOOTING):
            return 1.0 if content_type in ("qa", "repository", "documentation") else 0.6
        if intent == Intent.TUTORIAL:
            if any(m in text for m in ("tutorial", "guide", "how-to", "how to", "getting-started", "learn")):
                return 1.0
            return 0.8 if content_type in ("documentation", "qa") else 0.6
        if intent == Intent.NEWS:
            return 1.0 if content_type == "news" or self.freshness(result.url) >= 0.8 else 0.4
        if intent == Intent.COMPARISON:
            if any(m in text for m in (" vs", "versus", "compar", "differen")):
                return 1.0
            return 0.8 if content_type == "discussion" else 0.6
        if intent == Intent.FACTUAL:
            aligned = content_type == "encyclopedia" or domain.endswith(".gov") or domain.endswith(".edu")
            return 1.0 if aligned else 0.6
        if intent == Intent.SHOPPING:
            return 0.9 if any(m in text for m in ("review", "price", "buy", "best")) else 0.6
        if intent == Intent.LOCAL:
            return 0.9 if any(m in text for m in ("map", "directions", "near", "location")) else 0.7
        return 0.7

    # ---------- composite ----------

    def score(self, result: SearchResult, query: str, intent: Intent) -> SearchResult:
        """Fill every score field of one result (mutates and returns it)"""
        w = self.weights
        result.relevance_score = self.relevance(query, result, intent)
        result.authority_score = self.authority(result.source_domain, intent, query)
        result.quality_score = self.quality(result)
        result.freshness_score = self.freshness(result.url)
        result.intent_boost = self.intent_boost(result, intent)
        final = (
            w.relevance * result.relevance_score
            + w.authority * result.authority_score
            + w.quality * result.quality_score
            + w.intent_boost * result.intent_boost
            + w.freshness * result.freshness_score
        )
        result.final_score = round(max(0.0, min(1.0, final)), 6)
        return result

    def score_all(self, results: Sequence[SearchResult], query: str, intent: Intent) -> List[SearchResult]:
        return [self.score(r, query, intent) for r in results]

    def apply_relevance_floor(self, results: Sequence[SearchResult], threshold: float) -> List[SearchResult]:
        """Drop results below the relevance floor unless that would drop them all"""
        if threshold <= 0:
            return list(results)
        kept = [r for r in results if r.relevance_score >= threshold]
        if not kept:
            logger.debug(f"Relevance floor {threshold} would drop all {len(results)} results, keeping them")
            return list(results)
        return kept
