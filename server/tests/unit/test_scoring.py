"""
Unit tests for scoring, deduplication and diversification.
"""

from datetime import datetime, timezone

import pytest

from conftest import make_result
from websearch.models import Intent
from websearch.scoring import (
    ResultScorer,
    ScoringWeights,
    base_authority,
    deduplicate,
    diversify,
    infer_content_type,
    is_duplicate,
    sort_results,
    title_similarity,
    url_similarity,
)


def fixed_now():
    return datetime(2026, 6, 1, tzinfo=timezone.utc)


class TestScoringWeights:

    def test_defaults_sum_to_one(self):
        assert ScoringWeights().total == pytest.approx(1.0)

    def test_normalized_rescales(self):
        weights = ScoringWeights(relevance=2, authority=1, quality=1, intent_boost=0, freshness=0).normalized()
        assert weights.total == pytest.approx(1.0)
        assert weights.relevance == pytest.approx(0.5)

    def test_from_settings(self, test_settings):
        assert ScoringWeights.from_settings(test_settings).relevance == pytest.approx(0.35)


class TestAuthority:

    def test_base_table(self):
        assert base_authority("en.wikipedia.org") == 0.85
        assert base_authority("stackoverflow.com") == 0.80
        assert base_authority("nasa.gov") == 0.90
        assert base_authority("cs.stanford.edu") == 0.85
        assert base_authority("unknown-site.example") == 0.50
        assert base_authority("spamfarm.net") == 0.10

    def test_qa_boosted_for_technical(self):
        scorer = ResultScorer(now=fixed_now)
        assert scorer.authority("stackoverflow.com", Intent.TECHNICAL) > scorer.authority("stackoverflow.com", Intent.GENERAL)

    def test_encyclopedia_penalized_for_news_and_tutorial(self):
        scorer = ResultScorer(now=fixed_now)
        general = scorer.authority("en.wikipedia.org", Intent.GENERAL)
        assert scorer.authority("en.wikipedia.org", Intent.NEWS) < general
        assert scorer.authority("en.wikipedia.org", Intent.TUTORIAL) < general

    def test_encyclopedia_penalized_for_fresh_queries(self):
        scorer = ResultScorer(now=fixed_now)
        plain = scorer.authority("en.wikipedia.org", Intent.GENERAL, "rust release")
        fresh = scorer.authority("en.wikipedia.org", Intent.GENERAL, "latest rust release")
        assert fresh < plain

    def test_clamped(self):
        scorer = ResultScorer(now=fixed_now)
        assert scorer.authority("stackoverflow.com", Intent.TROUBLESHOOTING) == 1.0
        assert scorer.authority("spam.example", Intent.TUTORIAL) >= 0.1


class TestComponentScores:

    def test_relevance_rewards_overlap_and_phrase(self):
        scorer = ResultScorer(now=fixed_now)
        query = "rust async await"
        exact = make_result("Rust async await explained", "https://blog.example.com/a")
        partial = make_result("Rust ownership explained", "https://blog.example.com/b")
        unrelated = make_result("Banana bread recipe", "https://food.example.com/c")

        exact_score = scorer.relevance(query, exact, Intent.GENERAL)
        partial_score = scorer.relevance(query, partial, Intent.GENERAL)
        assert exact_score == 1.0
        assert 0 < partial_score < exact_score
        assert scorer.relevance(query, unrelated, Intent.GENERAL) == 0.0

    def test_freshness_from_url_years(self):
        scorer = ResultScorer(now=fixed_now)
        assert scorer.freshness("https://news.example.com/2026/05/story") == 1.0
        assert scorer.freshness("https://example.com/2025/post") == 0.8
        assert scorer.freshness("https://example.com/2024/post") == 0.6
        assert scorer.freshness("https://example.com/2015/post") == 0.4
        assert scorer.freshness("https://example.com/blog/post") == 0.7
        assert scorer.freshness("https://example.com/docs/api") == 0.5
        assert scorer.freshness("https://example.com/page") == 0.6

    def test_quality_prefers_https_and_clean_urls(self):
        scorer = ResultScorer(now=fixed_now)
        good = make_result("A reasonable title", "https://example.com/page", "x" * 120)
        poor = make_result("A reasonable title", "http://example.com/page?id=1&ref=2")
        assert scorer.quality(good) > scorer.quality(poor)

    def test_intent_boost_alignment(self):
        scorer = ResultScorer(now=fixed_now)
        qa = make_result("Question about lifetimes", "https://stackoverflow.com/q/1")
        blog = make_result("Thoughts about lifetimes", "https://someblog.example/p")
        assert scorer.intent_boost(qa, Intent.TECHNICAL) == 1.0
        assert scorer.intent_boost(blog, Intent.TECHNICAL) == 0.6

    def test_final_score_in_unit_interval(self):
        scorer = ResultScorer(now=fixed_now)
        result = make_result(
            "Rust async await syntax error",
            "https://stackoverflow.com/questions/1/rust-async-await-syntax-error",
            "rust async await syntax error explained",
        )
        scorer.score(result, "rust async await syntax error", Intent.TECHNICAL)
        assert 0.0 <= result.final_score <= 1.0
        for field in ("relevance_score", "authority_score", "quality_score", "freshness_score", "intent_boost"):
            assert 0.0 <= getattr(result, field) <= 1.0

    def test_relevance_floor_keeps_all_when_everything_is_below(self):
        scorer = ResultScorer(now=fixed_now)
        results = [make_result("Unrelated page one", "https://a.example/1"),
                   make_result("Unrelated page two", "https://b.example/2")]
        scorer.score_all(results, "quantum chromodynamics", Intent.GENERAL)
        assert scorer.apply_relevance_floor(results, 0.5) == results

    def test_relevance_floor_drops_weak_results(self):
        scorer = ResultScorer(now=fixed_now)
        strong = make_result("Quantum chromodynamics overview", "https://a.example/1")
        weak = make_result("Unrelated page two", "https://b.example/2")
        scorer.score_all([strong, weak], "quantum chromodynamics", Intent.GENERAL)
        assert scorer.apply_relevance_floor([strong, weak], 0.5) == [strong]


class TestDeduplication:

    def test_url_normalization(self):
        assert url_similarity("http://www.example.com/a/b/", "https://example.com/a/b") == 1.0

    def test_sibling_pages_are_not_duplicates(self):
        a = "https://docs.python.org/3/library/json.html"
        b = "https://docs.python.org/3/library/asyncio.html"
        assert url_similarity(a, b) == 0.75
        assert not is_duplicate(
            make_result("json - JSON encoder and decoder", a),
            make_result("asyncio - Asynchronous I/O", b),
        )

    def test_scheme_and_host_alone_do_not_match(self):
        assert url_similarity("https://example.com/a", "https://other.org/a") == 0.0
        assert url_similarity("https://example.com/a/b/c/d/e", "https://example.com/a/b/c/d/f") == 5 / 6

    def test_title_jaccard(self):
        assert title_similarity("Rust Async Book", "rust async book!") == 1.0
        assert title_similarity("Rust Async Book", "Python asyncio docs") == 0.0

    def test_first_seen_wins(self):
        first = make_result("Async/await in Rust", "https://example.com/guide/async", source_name="bing")
        dup = make_result("Async await in Rust", "http://www.example.com/guide/async/", source_name="duckduckgo")
        other = make_result("Tokio tutorial", "https://tokio.rs/tokio/tutorial")
        unique = deduplicate([first, dup, other])
        assert unique == [first, other]
        assert unique[0].source_name == "bing"

    def test_output_has_no_duplicate_pairs(self):
        results = [
            make_result("Same title here", "https://a.example/x"),
            make_result("Same title here", "https://b.example/y"),
            make_result("Different words entirely", "https://a.example/x/"),
            make_result("Another distinct page", "https://c.example/z"),
        ]
        unique = deduplicate(results)
        for i, a in enumerate(unique):
            for b in unique[i + 1:]:
                assert not is_duplicate(a, b)


class TestOrderingAndDiversity:

    def test_sort_by_score_then_priority(self):
        low = make_result("Low score page", "https://a.example/1", priority=9)
        high = make_result("High score page", "https://b.example/2", priority=1)
        tie_a = make_result("Tie page one", "https://c.example/3", priority=5)
        tie_b = make_result("Tie page two", "https://d.example/4", priority=8)
        low.final_score, high.final_score = 0.2, 0.9
        tie_a.final_score = tie_b.final_score = 0.5

        ordered = sort_results([low, tie_a, high, tie_b])
        assert ordered == [high, tie_b, tie_a, low]
        scores = [r.final_score for r in ordered]
        assert scores == sorted(scores, reverse=True)

    def test_per_domain_cap(self):
        results = [make_result(f"Stack answer number {i}", f"https://stackoverflow.com/q/{i}") for i in range(5)]
        results.append(make_result("GitHub repository page", "https://github.com/org/repo"))
        kept = diversify(results, target=10, per_domain_cap=3)
        assert sum(1 for r in kept if r.source_domain == "stackoverflow.com") == 3
        assert kept[-1].source_domain == "github.com"

    def test_target_truncates(self):
        results = [make_result(f"Page number {i}", f"https://site{i}.example/") for i in range(8)]
        assert len(diversify(results, target=5)) == 5


class TestContentType:

    @pytest.mark.parametrize("domain,url,expected", [
        ("stackoverflow.com", "https://stackoverflow.com/q/1", "qa"),
        ("github.com", "https://github.com/a/b", "repository"),
        ("en.wikipedia.org", "https://en.wikipedia.org/wiki/X", "encyclopedia"),
        ("arxiv.org", "https://arxiv.org/abs/1", "paper"),
        ("docs.rs", "https://docs.rs/tokio", "documentation"),
        ("reddit.com", "https://reddit.com/r/x", "discussion"),
        ("reuters.com", "https://reuters.com/world", "news"),
        ("example.com", "https://example.com/post", "article"),
    ])
    def test_infer(self, domain, url, expected):
        assert infer_content_type(domain, url) == expected
