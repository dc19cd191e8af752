"""
Search Orchestrator - three-phase multi-backend pipeline

Per search call:
    cache lookup -> classify intent -> select strategy
    Phase 1: broad search, strategy backends run concurrently under a
             semaphore of size concurrent_engines; results merge in
             completion order; per-backend failures are logged and skipped
    Phase 2: optional refinement, when enabled, budget remains and the
             aggregate quality is below the strategy threshold; refined
             queries go to the best 1-2 backends of Phase 1
    domain filters (blocked first, then allowed) on the merged results
    Phase 3: dedup -> score -> sort -> diversify/truncate -> enrich top
             results -> citations -> cache store

The iteration budget (strategy.max_iterations) counts backend calls across
Phases 1 and 2. Zero Phase-1 results raise NoResultsError.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.exceptions import AppException, FetchError, NoResultsError

from .models import Citation, Intent, SearchMetadata, SearchOutcome, SearchResult, UserLocation
from .query_classifier import classify_query_intent
from .query_refiner import QueryRefiner, aggregate_quality
from .result_cache import ResultCache, make_cache_key
from .scoring import ResultScorer, deduplicate, diversify, sort_results
from .scraper import ContentScraper
from .search_metrics import SearchMetrics
from .search_providers import SearchProvider
from .strategy import Strategy, select_strategy
from .text_utils import truncate_text

logger = logging.getLogger("websearch.orchestrator")

CITATION_EXCERPT_LENGTH = 300


@dataclass
class SearchOptions:
    """Caller-supplied knobs of one search call"""
    max_uses: Optional[int] = None
    allowed_domains: List[str] = field(default_factory=list)
    blocked_domains: List[str] = field(default_factory=list)
    user_location: Optional[UserLocation] = None

    def cache_options(self) -> Dict[str, Any]:
        return {
            "max_uses": self.max_uses,
            "allowed": sorted(d.lower() for d in self.allowed_domains),
            "blocked": sorted(d.lower() for d in self.blocked_domains),
            "country": self.user_location.country if self.user_location else None,
        }


@dataclass
class IterationBudget:
    """Counts backend calls against strategy.max_iterations"""
    limit: int
    used: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def take(self) -> bool:
        if self.used >= self.limit:
            return False
        self.used += 1
        return True


def apply_domain_filters(
    results: Sequence[SearchResult],
    allowed_domains: Optional[Sequence[str]] = None,
    blocked_domains: Optional[Sequence[str]] = None,
) -> List[SearchResult]:
    """
    Substring domain filter.

    blocked_domains is checked first and excludes unconditionally; a
    non-empty allowed_domains keeps only domains containing one entry.
    """
    blocked = [b.strip().lower() for b in blocked_domains or [] if b and b.strip()]
    allowed = [a.strip().lower() for a in allowed_domains or [] if a and a.strip()]
    kept = []
    for result in results:
        domain = result.source_domain.lower()
        if any(b in domain for b in blocked):
            continue
        if allowed and not any(a in domain for a in allowed):
            continue
        kept.append(result)
    return kept


def build_citations(results: Sequence[SearchResult], limit: int) -> List[Citation]:
    return [
        Citation(
            title=r.title,
            url=r.url,
            domain=r.source_domain,
            excerpt=truncate_text(r.content or r.snippet or "", CITATION_EXCERPT_LENGTH),
        )
        for r in results[:limit]
    ]


class SearchOrchestrator:
    """Runs the search pipeline for one SearchService."""

    def __init__(
        self,
        providers: Dict[str, SearchProvider],
        scorer: ResultScorer,
        settings,
        metrics: SearchMetrics,
        cache: Optional[ResultCache] = None,
        scraper: Optional[ContentScraper] = None,
        refiner: Optional[QueryRefiner] = None,
    ):
        self.providers = providers
        self.scorer = scorer
        self.settings = settings
        self.metrics = metrics
        self.cache = cache
        self.scraper = scraper
        self.refiner = refiner or QueryRefiner()

    # ============================================
    # ENTRY POINT
    # ============================================

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> SearchOutcome:
        """
        Run a full search.

        Raises:
            NoResultsError: no backend returned anything (or filters removed everything)
        """
        options = options or SearchOptions()
        start_time = time.time()
        intent = classify_query_intent(query)
        cache_key = make_cache_key(query, intent, options.cache_options())

        cached = await self._cache_get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for '{query[:50]}' ({intent.value})")
            return cached

        extra = ["searxng"] if "searxng" in self.providers else None
        strategy = select_strategy(
            intent,
            max_uses=options.max_uses,
            iteration_cap=self.settings.max_search_iterations,
            extra_engines=extra,
        )
        budget = IterationBudget(limit=strategy.max_iterations)
        logger.info(
            f"Searching '{query[:60]}' as {intent.value} via {strategy.engines} "
            f"(budget {budget.limit})"
        )

        # Phase 1
        eligible = self._eligible_providers(strategy, query, intent)
        calls = [(p, query) for p in eligible if budget.take()]
        results, succeeded = await self._run_calls(calls, intent, options.user_location)
        queries_used = [query]
        engines_used = [p.name for p, _ in calls]

        if not results:
            raise NoResultsError(
                message=f"No results for '{query[:100]}'",
                query=query[:200],
                engines=engines_used,
            )

        # Phase 2
        if strategy.refinement_enabled and budget.remaining > 0:
            refined_results, refined_queries, refined_engines = await self._refine(
                query, intent, strategy, results, succeeded, budget, options.user_location
            )
            results.extend(refined_results)
            queries_used.extend(refined_queries)
            engines_used.extend(refined_engines)

        filtered = apply_domain_filters(results, options.allowed_domains, options.blocked_domains)
        if len(filtered) < len(results):
            logger.info(f"Domain filters kept {len(filtered)}/{len(results)} results")
        if not filtered:
            raise NoResultsError(
                message=f"All results for '{query[:100]}' were excluded by domain filters",
                query=query[:200],
                engines=engines_used,
                allowed_domains=options.allowed_domains,
                blocked_domains=options.blocked_domains,
            )

        # Phase 3
        final = await self._finalize(query, intent, filtered)

        processing_ms = int((time.time() - start_time) * 1000)
        outcome = SearchOutcome(
            query_used=query,
            results=final,
            citations=build_citations(final, self.settings.max_citations),
            metadata=SearchMetadata(
                searches_performed=budget.used,
                queries_used=queries_used,
                processing_time_ms=processing_ms,
                intent=intent,
                engines_used=list(dict.fromkeys(engines_used)),
            ),
        )
        await self._cache_put(cache_key, outcome)

        logger.info(
            f"Search complete: {len(final)} results from {budget.used} backend calls "
            f"in {processing_ms}ms"
        )
        return outcome

    # ============================================
    # PHASE HELPERS
    # ============================================

    def _eligible_providers(self, strategy: Strategy, query: str, intent: Intent) -> List[SearchProvider]:
        """Strategy backends that exist, accept this query and are not backing off"""
        eligible = []
        for name in strategy.engines:
            provider = self.providers.get(name)
            if provider is None:
                continue
            if not provider.supports_intent(intent) or not provider.is_suitable(query, intent):
                logger.debug(f"Skipping {name}: not suited to this query")
                continue
            available, reason = self.metrics.is_provider_available(name)
            if not available:
                logger.info(f"Skipping {name}: {reason}")
                continue
            eligible.append(provider)
        return eligible

    async def _run_calls(
        self,
        calls: Sequence[Tuple[SearchProvider, str]],
        intent: Intent,
        location: Optional[UserLocation],
    ) -> Tuple[List[SearchResult], List[str]]:
        """
        Run backend calls concurrently under the engine semaphore.

        Returns:
            (results merged in completion order, names of backends that returned results)
        """
        if not calls:
            return [], []

        semaphore = asyncio.Semaphore(self.settings.concurrent_engines)

        async def run_one(provider: SearchProvider, q: str) -> Tuple[str, List[SearchResult]]:
            async with semaphore:
                start = time.time()
                try:
                    found = await provider.search(q, intent, location)
                except AppException as e:
                    duration_ms = (time.time() - start) * 1000
                    self.metrics.record_search(provider.name, q, 0, duration_ms, success=False, error=e.message)
                    if isinstance(e, FetchError) and e.is_rate_limited:
                        self.metrics.record_rate_limit(provider.name)
                    logger.warning(f"{provider.name} failed for '{q[:50]}': {e.message}")
                    return provider.name, []
                except Exception as e:
                    duration_ms = (time.time() - start) * 1000
                    self.metrics.record_search(provider.name, q, 0, duration_ms, success=False, error=type(e).__name__)
                    logger.error(f"{provider.name} raised unexpectedly for '{q[:50]}': {e}", exc_info=True)
                    return provider.name, []
                duration_ms = (time.time() - start) * 1000
                self.metrics.record_search(provider.name, q, len(found), duration_ms, success=True)
                self.metrics.reset_rate_limit(provider.name)
                return provider.name, found

        tasks = [asyncio.ensure_future(run_one(p, q)) for p, q in calls]
        merged: List[SearchResult] = []
        succeeded: List[str] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                name, found = await next_done
                merged.extend(found)
                if found and name not in succeeded:
                    succeeded.append(name)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        return merged, succeeded

    async def _refine(
        self,
        query: str,
        intent: Intent,
        strategy: Strategy,
        results: List[SearchResult],
        succeeded: List[str],
        budget: IterationBudget,
        location: Optional[UserLocation],
    ) -> Tuple[List[SearchResult], List[str], List[str]]:
        """
        Phase 2: re-search refined queries against the best Phase-1 backends.

        Returns:
            (new results, refined queries issued, backend names used)
        """
        self.scorer.score_all(results, query, intent)
        quality = aggregate_quality(results)
        if quality >= strategy.quality_threshold:
            logger.debug(f"Aggregate quality {quality:.2f} >= {strategy.quality_threshold}, no refinement")
            return [], [], []

        refined_queries = self.refiner.refine(query, intent, results)
        ranked = [n for n in strategy.engines if n in succeeded and n in self.providers]
        top = [self.providers[n] for n in ranked[:self.settings.refinement_engines]]
        if not refined_queries or not top:
            return [], [], []

        calls = []
        used_queries = []
        for refined in refined_queries:
            issued = False
            for provider in top:
                if not budget.take():
                    break
                calls.append((provider, refined))
                issued = True
            if issued:
                used_queries.append(refined)
            if budget.remaining == 0:
                break

        logger.info(
            f"Aggregate quality {quality:.2f} < {strategy.quality_threshold}; "
            f"refining with {len(used_queries)} queries on {[p.name for p in top]}"
        )
        refined_results, _ = await self._run_calls(calls, intent, location)
        return refined_results, used_queries, [p.name for p in top]

    async def _finalize(self, query: str, intent: Intent, results: List[SearchResult]) -> List[SearchResult]:
        """Phase 3: dedup, score, order, cap per domain, truncate, enrich"""
        unique = deduplicate(results)
        self.scorer.score_all(unique, query, intent)
        unique = self.scorer.apply_relevance_floor(unique, self.settings.min_relevance_threshold)
        ordered = sort_results(unique)
        final = diversify(ordered, self.settings.context_result_limit, self.settings.per_domain_cap)

        if self.scraper is not None and self.settings.enable_content_extraction and final:
            targets = final[:self.settings.max_scrape_urls]
            contents = await self.scraper.scrape_urls([r.url for r in targets], intent)
            for result in targets:
                content = contents.get(result.url)
                if content:
                    result.content = content

        return final

    # ============================================
    # CACHE ACCESS (errors count as misses)
    # ============================================

    async def _cache_get(self, key: str) -> Optional[SearchOutcome]:
        if self.cache is None:
            return None
        try:
            cached = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
            cached = None
        self.metrics.record_cache_lookup(cached is not None)
        return cached

    async def _cache_put(self, key: str, outcome: SearchOutcome) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.put(key, outcome)
        except Exception as e:
            logger.warning(f"Cache store failed: {e}")
