"""
Query Refinement for the optional second search phase.

When the aggregate quality of the first-phase results falls below the
strategy's threshold, derive up to N refined queries:
1. frequent-term expansion: the most common keywords of the best results
   (final score above a threshold) that the query does not already contain
2. an intent template appended to the original query

Terms come from titles and snippets, are alphabetic (hyphens allowed), at
least 3 characters, and not in the shared STOPWORDS list.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence

from .models import Intent, SearchResult
from .text_utils import STOPWORDS, extract_keywords, stem_word, tokenize

logger = logging.getLogger("websearch.query_refiner")


INTENT_TEMPLATES: Dict[Intent, str] = {
    Intent.TUTORIAL: "tutorial guide",
    Intent.TECHNICAL: "documentation example",
    Intent.TROUBLESHOOTING: "fix solution",
    Intent.COMPARISON: "differences pros cons",
    Intent.FACTUAL: "definition overview",
    Intent.GENERAL: "overview",
    Intent.ACADEMIC: "research paper",
    Intent.NEWS: "latest news",
    Intent.SHOPPING: "review",
    Intent.LOCAL: "near me",
}


def content_depth(result: SearchResult) -> float:
    """How much text a result carries, 0..1 (300 chars counts as full)"""
    text = result.content or result.snippet or ""
    return min(1.0, len(text) / 300)


def aggregate_quality(results: Sequence[SearchResult]) -> float:
    """Mean of (authority + content depth + relevance) / 3 over scored results"""
    if not results:
        return 0.0
    total = sum(
        (r.authority_score + content_depth(r) + r.relevance_score) / 3
        for r in results
    )
    return total / len(results)


@dataclass
class QueryRefiner:
    """Builds refined queries from first-phase results."""
    max_queries: int = 3
    term_threshold: float = 0.7
    terms_per_query: int = 2

    def extract_frequent_terms(self, query: str, results: Sequence[SearchResult], limit: int = 6) -> List[str]:
        """Most frequent new terms across the high-scoring results"""
        query_keywords = extract_keywords(query)
        counts: Counter = Counter()
        for result in results:
            if result.final_score <= self.term_threshold:
                continue
            seen = set()
            for word in tokenize(f"{result.title} {result.snippet or ''}"):
                if len(word) < 3 or word in STOPWORDS or word in seen:
                    continue
                if not word.replace("-", "").isalpha():
                    continue
                if word in query_keywords or stem_word(word) in query_keywords:
                    continue
                seen.add(word)
                counts[word] += 1
        # most_common keeps first-insertion order for ties
        return [term for term, _ in counts.most_common(limit)]

    def refine(self, query: str, intent: Intent, results: Sequence[SearchResult]) -> List[str]:
        """
        Derive refined queries.

        Args:
            query: Original query
            intent: Classified intent
            results: Scored first-phase results

        Returns:
            Up to max_queries distinct queries, none equal to the original
        """
        base = " ".join(query.split())
        candidates: List[str] = []

        terms = self.extract_frequent_terms(base, results)
        for start in range(0, len(terms), self.terms_per_query):
            chunk = terms[start:start + self.terms_per_query]
            if not chunk:
                break
            candidates.append(f"{base} {' '.join(chunk)}")
            if len(candidates) >= self.max_queries - 1:
                break

        template = INTENT_TEMPLATES.get(intent)
        if template:
            missing = [w for w in template.split() if w not in base.lower().split()]
            if missing:
                candidates.append(f"{base} {' '.join(missing)}")

        refined: List[str] = []
        seen = {base.lower()}
        for candidate in candidates:
            key = candidate.lower()
            if key in seen:
                continue
            seen.add(key)
            refined.append(candidate)
            if len(refined) >= self.max_queries:
                break

        logger.debug(f"Refined '{base[:50]}' into {len(refined)} queries: {refined}")
        return refined
