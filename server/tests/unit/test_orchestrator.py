"""
Unit tests for the three-phase search orchestrator.

Backends are FakeProvider instances from conftest; no HTTP is involved.
"""

import asyncio

import pytest

from conftest import FakeProvider, make_result
from core.exceptions import FetchError, NoResultsError, ParseError
from websearch.models import Intent
from websearch.orchestrator import (
    IterationBudget,
    SearchOptions,
    SearchOrchestrator,
    apply_domain_filters,
    build_citations,
)
from websearch.result_cache import ResultCache
from websearch.scoring import ResultScorer, is_duplicate
from websearch.search_metrics import SearchMetrics

TECH_QUERY = "rust async await syntax error"
GENERAL_QUERY = "golden retriever temperament"


def build_orchestrator(settings, providers, cache=None, scraper=None, metrics=None):
    return SearchOrchestrator(
        providers=providers,
        scorer=ResultScorer(),
        settings=settings,
        metrics=metrics or SearchMetrics(),
        cache=cache,
        scraper=scraper,
    )


class ConcurrencyGauge(FakeProvider):
    """Records how many backend calls are in flight at once."""

    in_flight = 0
    peak = 0

    async def search(self, query, intent, location=None):
        cls = type(self)
        cls.in_flight += 1
        cls.peak = max(cls.peak, cls.in_flight)
        try:
            await asyncio.sleep(0.02)
            return await super().search(query, intent, location)
        finally:
            cls.in_flight -= 1


class FakeScraper:
    def __init__(self):
        self.requested = []

    async def scrape_urls(self, urls, intent):
        self.requested.extend(urls)
        return {url: (f"Full page content for {url}" if i == 0 else None) for i, url in enumerate(urls)}


class TestHelpers:

    def test_iteration_budget(self):
        budget = IterationBudget(limit=2)
        assert budget.take() and budget.take()
        assert budget.take() is False
        assert budget.used == 2
        assert budget.remaining == 0

    def test_blocked_checked_before_allowed(self):
        results = [
            make_result("Stack Overflow answer", "https://stackoverflow.com/q/1"),
            make_result("Meta Stack Exchange post", "https://meta.stackexchange.com/q/2"),
            make_result("GitHub repository", "https://github.com/a/b"),
        ]
        kept = apply_domain_filters(results, allowed_domains=["stack"], blocked_domains=["meta."])
        assert [r.source_domain for r in kept] == ["stackoverflow.com"]

    def test_filters_are_case_insensitive_substrings(self):
        results = [make_result("Docs page title", "https://docs.python.org/3/")]
        assert apply_domain_filters(results, allowed_domains=["PYTHON.ORG"]) == results
        assert apply_domain_filters(results, blocked_domains=["Python"]) == []

    def test_citations_prefer_content(self):
        a = make_result("First result title", "https://a.example/", "snippet a")
        b = make_result("Second result title", "https://b.example/", "snippet b")
        a.content = "enriched content"
        citations = build_citations([a, b], limit=1)
        assert len(citations) == 1
        assert citations[0].excerpt == "enriched content"
        assert citations[0].domain == "a.example"


class TestPhaseOne:

    @pytest.mark.asyncio
    async def test_technical_search(self, test_settings, fake_providers):
        orchestrator = build_orchestrator(test_settings, fake_providers)
        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))

        meta = outcome.metadata
        assert meta.intent == Intent.TECHNICAL
        assert meta.searches_performed == 4
        assert meta.queries_used == [TECH_QUERY]
        assert meta.engines_used == ["stackoverflow", "github", "duckduckgo", "bing"]
        assert len(outcome.results) == 3

        scores = [r.final_score for r in outcome.results]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)
        assert outcome.results[0].source_domain == "stackoverflow.com"
        assert [c.url for c in outcome.citations] == [r.url for r in outcome.results][:test_settings.max_citations]

    @pytest.mark.asyncio
    async def test_no_results_raises(self, test_settings):
        providers = {name: FakeProvider(name) for name in ("duckduckgo", "bing")}
        orchestrator = build_orchestrator(test_settings, providers)

        with pytest.raises(NoResultsError) as exc_info:
            await orchestrator.search(GENERAL_QUERY)
        assert exc_info.value.details["engines"] == ["duckduckgo", "bing"]

    @pytest.mark.asyncio
    async def test_failing_backend_is_skipped(self, test_settings, fake_providers):
        fake_providers["stackoverflow"].error = ParseError("stackoverflow", "bad payload")
        metrics = SearchMetrics()
        orchestrator = build_orchestrator(test_settings, fake_providers, metrics=metrics)

        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))

        assert {r.source_name for r in outcome.results} == {"github", "duckduckgo"}
        stats = metrics.get_provider_stats("stackoverflow")
        assert stats.failed_searches == 1
        assert "bad payload" in stats.last_error

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_skipped(self, test_settings, fake_providers):
        fake_providers["github"].error = RuntimeError("boom")
        orchestrator = build_orchestrator(test_settings, fake_providers)
        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))
        assert "github" not in {r.source_name for r in outcome.results}

    @pytest.mark.asyncio
    async def test_rate_limited_backend_backs_off(self, test_settings, fake_providers):
        fake_providers["stackoverflow"].error = FetchError(
            "https://api.stackexchange.com/2.3/search/advanced", "HTTP 429", attempts=2, status_code=429
        )
        metrics = SearchMetrics()
        orchestrator = build_orchestrator(test_settings, fake_providers, metrics=metrics)

        await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))
        assert metrics.is_provider_available("stackoverflow")[0] is False

        second = await orchestrator.search("rust lifetime elision rules", SearchOptions(max_uses=4))
        assert len(fake_providers["stackoverflow"].calls) == 1
        assert "stackoverflow" not in second.metadata.engines_used

    @pytest.mark.asyncio
    async def test_budget_limits_backend_calls(self, test_settings, fake_providers):
        orchestrator = build_orchestrator(test_settings, fake_providers)
        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=2))

        assert outcome.metadata.searches_performed == 2
        assert fake_providers["duckduckgo"].calls == []
        assert fake_providers["bing"].calls == []

    @pytest.mark.asyncio
    async def test_declined_backends_do_not_spend_budget(self, test_settings, fake_providers):
        fake_providers["stackoverflow"].suitable = False
        orchestrator = build_orchestrator(test_settings, fake_providers)
        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=2))

        assert fake_providers["stackoverflow"].calls == []
        assert outcome.metadata.engines_used == ["github", "duckduckgo"]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, test_settings):
        ConcurrencyGauge.in_flight = 0
        ConcurrencyGauge.peak = 0
        test_settings.concurrent_engines = 2
        providers = {
            name: ConcurrencyGauge(name, [make_result(f"Result from {name} backend", f"https://{name}.example/r")])
            for name in ("duckduckgo", "bing", "wikipedia", "reddit")
        }
        orchestrator = build_orchestrator(test_settings, providers)

        await orchestrator.search("anyone tried standing desks", SearchOptions(max_uses=4))
        assert ConcurrencyGauge.peak == 2


class TestFiltersAndFinalization:

    @pytest.mark.asyncio
    async def test_blocked_domain_never_returned(self, test_settings, fake_providers):
        orchestrator = build_orchestrator(test_settings, fake_providers)
        outcome = await orchestrator.search(
            TECH_QUERY, SearchOptions(max_uses=4, blocked_domains=["stackoverflow.com"])
        )
        assert all("stackoverflow.com" not in r.source_domain for r in outcome.results)
        assert all("stackoverflow.com" not in c.domain for c in outcome.citations)

    @pytest.mark.asyncio
    async def test_allowed_domains_restrict_results(self, test_settings, fake_providers):
        orchestrator = build_orchestrator(test_settings, fake_providers)
        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4, allowed_domains=["github.com"]))
        assert [r.source_domain for r in outcome.results] == ["github.com"]

    @pytest.mark.asyncio
    async def test_filters_removing_everything_raise(self, test_settings, fake_providers):
        orchestrator = build_orchestrator(test_settings, fake_providers)
        with pytest.raises(NoResultsError) as exc_info:
            await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4, allowed_domains=["nowhere.example"]))
        assert exc_info.value.details["allowed_domains"] == ["nowhere.example"]

    @pytest.mark.asyncio
    async def test_duplicates_merged_and_domain_capped(self, test_settings):
        so_results = [
            make_result(f"Answer about rust lifetimes variant {i}", f"https://stackoverflow.com/questions/{i}/topic-{i}")
            for i in range(5)
        ]
        duplicate = make_result("Answer about rust lifetimes variant 0", "http://www.stackoverflow.com/questions/0/topic-0/")
        providers = {
            "stackoverflow": FakeProvider("stackoverflow", so_results, priority=9),
            "duckduckgo": FakeProvider("duckduckgo", [duplicate], priority=8),
        }
        orchestrator = build_orchestrator(test_settings, providers)
        outcome = await orchestrator.search("rust lifetimes", SearchOptions(max_uses=2))

        assert sum(1 for r in outcome.results if r.source_domain == "stackoverflow.com") == test_settings.per_domain_cap
        for i, a in enumerate(outcome.results):
            for b in outcome.results[i + 1:]:
                assert not is_duplicate(a, b)

    @pytest.mark.asyncio
    async def test_enrichment_fills_content(self, test_settings, fake_providers):
        test_settings.enable_content_extraction = True
        scraper = FakeScraper()
        orchestrator = build_orchestrator(test_settings, fake_providers, scraper=scraper)

        outcome = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))

        top = outcome.results[0]
        assert scraper.requested == [r.url for r in outcome.results]
        assert top.content == f"Full page content for {top.url}"
        assert outcome.citations[0].excerpt == top.content
        assert outcome.results[1].content is None


class TestRefinement:

    @pytest.mark.asyncio
    async def test_low_quality_triggers_refinement(self, test_settings):
        weak = make_result("Dog breeds directory listing", "https://dogs.example/list")
        strong = make_result(
            "Golden retriever temperament overview",
            "https://breeds.example/golden-retriever",
            "Golden retrievers are friendly, reliable and trustworthy dogs.",
        )

        def ddg_results(query):
            return [strong] if query != GENERAL_QUERY else [weak]

        providers = {
            "duckduckgo": FakeProvider("duckduckgo", ddg_results, priority=8),
            "bing": FakeProvider("bing", [], priority=7),
        }
        orchestrator = build_orchestrator(test_settings, providers)
        outcome = await orchestrator.search(GENERAL_QUERY)

        assert outcome.metadata.queries_used == [GENERAL_QUERY, f"{GENERAL_QUERY} overview"]
        assert outcome.metadata.searches_performed == 3
        assert providers["bing"].calls == [GENERAL_QUERY]
        assert outcome.results[0].url == strong.url
        assert outcome.metadata.engines_used == ["duckduckgo", "bing"]

    @pytest.mark.asyncio
    async def test_no_refinement_without_budget(self, test_settings):
        weak = make_result("Dog breeds directory listing", "https://dogs.example/list")
        providers = {
            "duckduckgo": FakeProvider("duckduckgo", [weak]),
            "bing": FakeProvider("bing", []),
        }
        orchestrator = build_orchestrator(test_settings, providers)
        outcome = await orchestrator.search(GENERAL_QUERY, SearchOptions(max_uses=2))

        assert outcome.metadata.queries_used == [GENERAL_QUERY]
        assert providers["duckduckgo"].calls == [GENERAL_QUERY]

    @pytest.mark.asyncio
    async def test_refinement_disabled_for_news(self, test_settings):
        weak = make_result("Some headline page", "https://news.example/item")
        providers = {"bing": FakeProvider("bing", [weak]), "duckduckgo": FakeProvider("duckduckgo", [])}
        orchestrator = build_orchestrator(test_settings, providers)
        outcome = await orchestrator.search("latest election results")

        assert outcome.metadata.intent == Intent.NEWS
        assert outcome.metadata.searches_performed == 2


class TestCaching:

    @pytest.mark.asyncio
    async def test_second_identical_search_is_served_from_cache(self, test_settings, fake_providers):
        metrics = SearchMetrics()
        orchestrator = build_orchestrator(test_settings, fake_providers, cache=ResultCache(), metrics=metrics)

        first = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))
        second = await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))

        assert second == first
        assert len(fake_providers["stackoverflow"].calls) == 1
        assert metrics.cache_hits == 1
        assert metrics.cache_misses == 1

    @pytest.mark.asyncio
    async def test_filtered_search_does_not_reuse_unfiltered_entry(self, test_settings, fake_providers):
        orchestrator = build_orchestrator(test_settings, fake_providers, cache=ResultCache())

        await orchestrator.search(TECH_QUERY, SearchOptions(max_uses=4))
        filtered = await orchestrator.search(
            TECH_QUERY, SearchOptions(max_uses=4, blocked_domains=["github.com"])
        )

        assert len(fake_providers["github"].calls) == 2
        assert "github.com" not in {r.source_domain for r in filtered.results}
