"""
Unit tests for the TTL result cache.
"""

import pytest

from conftest import FakeClock, make_result
from websearch.models import Intent, SearchMetadata, SearchOutcome
from websearch.result_cache import ResultCache, make_cache_key


def outcome_for(query: str) -> SearchOutcome:
    return SearchOutcome(
        query_used=query,
        results=[make_result("Cached result title", "https://example.com/cached", "snippet")],
        metadata=SearchMetadata(searches_performed=2, queries_used=[query], intent=Intent.GENERAL),
    )


class TestMakeCacheKey:

    def test_normalizes_case_and_whitespace(self):
        assert make_cache_key("  Rust   Async ", Intent.TECHNICAL) == "rust async:technical"

    def test_intent_is_part_of_key(self):
        assert make_cache_key("python", Intent.TECHNICAL) != make_cache_key("python", Intent.GENERAL)

    def test_empty_options_do_not_change_key(self):
        options = {"max_uses": None, "allowed": [], "blocked": [], "country": None}
        assert make_cache_key("rust", Intent.TECHNICAL, options) == "rust:technical"

    def test_filters_change_key_stably(self):
        a = make_cache_key("rust", Intent.TECHNICAL, {"blocked": ["pinterest.com"]})
        b = make_cache_key("rust", Intent.TECHNICAL, {"blocked": ["pinterest.com"]})
        c = make_cache_key("rust", Intent.TECHNICAL, {"blocked": ["reddit.com"]})
        assert a == b
        assert a != c
        assert a.startswith("rust:technical:")


class TestResultCache:

    @pytest.mark.asyncio
    async def test_round_trip(self):
        cache = ResultCache()
        outcome = outcome_for("rust async")
        await cache.put("k", outcome)
        assert await cache.get("k") == outcome

    @pytest.mark.asyncio
    async def test_miss(self):
        assert await ResultCache().get("missing") is None

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        await cache.put("k", outcome_for("q"))

        clock.advance(59)
        assert await cache.get("k") is not None
        clock.advance(1)
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_sweep_removes_expired(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=10, clock=clock)
        await cache.put("old", outcome_for("old"))
        clock.advance(8)
        await cache.put("new", outcome_for("new"))
        clock.advance(5)

        assert await cache.sweep() == 1
        assert len(cache) == 1
        assert cache.get_stats()["valid_entries"] == 1

    @pytest.mark.asyncio
    async def test_oldest_evicted_past_capacity(self):
        clock = FakeClock()
        cache = ResultCache(max_entries=2, clock=clock)
        for key in ("a", "b", "c"):
            await cache.put(key, outcome_for(key))
            clock.advance(1)

        assert len(cache) == 2
        assert await cache.get("a") is None
        assert await cache.get("c") is not None

    @pytest.mark.asyncio
    async def test_stored_value_is_isolated_from_caller(self):
        cache = ResultCache()
        outcome = outcome_for("q")
        await cache.put("k", outcome)

        outcome.results[0].snippet = "mutated after put"
        first = await cache.get("k")
        assert first.results[0].snippet == "snippet"

        first.results[0].snippet = "mutated after get"
        second = await cache.get("k")
        assert second.results[0].snippet == "snippet"

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = ResultCache()
        await cache.put("a", outcome_for("a"))
        await cache.put("b", outcome_for("b"))
        assert await cache.clear() == 2
        assert len(cache) == 0
