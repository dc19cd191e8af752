"""
Unit tests for refinement-query generation and aggregate quality.
"""

import pytest

from conftest import make_result
from websearch.models import Intent
from websearch.query_refiner import QueryRefiner, aggregate_quality, content_depth


def scored(title, url, snippet, final_score):
    result = make_result(title, url, snippet)
    result.final_score = final_score
    return result


@pytest.fixture
def strong_results():
    return [
        scored("Tokio runtime executor", "https://tokio.rs/a", "Spawns tasks on the runtime", 0.8),
        scored("Tokio runtime internals", "https://tokio.rs/b", "How the scheduler works", 0.75),
        scored("Unrelated weak page", "https://weak.example/c", "Should never contribute terms", 0.3),
    ]


class TestAggregateQuality:

    def test_empty_is_zero(self):
        assert aggregate_quality([]) == 0.0

    def test_mean_of_components(self):
        result = make_result("Some page title", "https://example.com/", "x" * 300)
        result.authority_score = 0.6
        result.relevance_score = 0.3
        assert content_depth(result) == 1.0
        assert aggregate_quality([result]) == pytest.approx((0.6 + 1.0 + 0.3) / 3)


class TestQueryRefiner:

    def test_frequent_terms_from_high_scoring_results_only(self, strong_results):
        terms = QueryRefiner().extract_frequent_terms("rust async", strong_results)
        assert terms[:2] == ["tokio", "runtime"]
        assert "unrelated" not in terms
        assert "contribute" not in terms

    def test_terms_exclude_query_words_and_stopwords(self, strong_results):
        terms = QueryRefiner().extract_frequent_terms("tokio runtime", strong_results)
        assert "tokio" not in terms
        assert "runtime" not in terms
        assert "the" not in terms
        assert "how" not in terms

    def test_refine_combines_terms_and_template(self, strong_results):
        refined = QueryRefiner(max_queries=3).refine("rust async", Intent.TECHNICAL, strong_results)
        assert refined == [
            "rust async tokio runtime",
            "rust async executor spawns",
            "rust async documentation example",
        ]

    def test_refine_without_strong_results_uses_template(self):
        weak = [scored("Weak page title", "https://weak.example/", "nothing much", 0.2)]
        assert QueryRefiner().refine("tcp vs udp", Intent.COMPARISON, weak) == [
            "tcp vs udp differences pros cons"
        ]

    def test_template_only_adds_missing_words(self):
        assert QueryRefiner().refine("python tutorial", Intent.TUTORIAL, []) == ["python tutorial guide"]

    def test_never_returns_original_and_respects_cap(self, strong_results):
        refiner = QueryRefiner(max_queries=2)
        refined = refiner.refine("rust async", Intent.TECHNICAL, strong_results)
        assert len(refined) <= 2
        assert "rust async" not in refined
        assert len(set(refined)) == len(refined)

    def test_nothing_to_add(self):
        assert QueryRefiner().refine("tutorial guide", Intent.TUTORIAL, []) == []
