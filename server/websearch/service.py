"""
SearchService - the single owner of search state.

Holds the shared Fetcher, the backend registry, the result cache, metrics,
scorer, scraper and refiner, and hands them to one SearchOrchestrator.
Construct it once per process (the FastAPI lifespan does) and share it.

search() validates input and enforces an overall deadline. The deadline is
settings.search_deadline_seconds, or 2x the worst-case single-backend fetch
(all attempt timeouts plus backoff sleeps) when unset. On expiry every
in-flight fetch is cancelled and SearchTimeoutError is raised.

Usage:
    async with SearchService() as service:
        outcome = await service.search("rust async await syntax error", max_uses=5)
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from config.settings import WebSearchSettings, get_settings
from core.exceptions import AppException, ErrorCode, NoResultsError, SearchTimeoutError, ValidationError

from .fetcher import Fetcher, RetryConfig
from .models import Intent, SearchOutcome, UserLocation
from .orchestrator import SearchOptions, SearchOrchestrator
from .query_classifier import classify_query_intent
from .query_refiner import QueryRefiner
from .result_cache import ResultCache
from .scoring import ResultScorer, ScoringWeights
from .scraper import ContentScraper
from .search_metrics import SearchMetrics
from .search_providers import SearchProvider, build_default_providers
from .strategy import Strategy, select_strategy

logger = logging.getLogger("websearch.service")

MAX_QUERY_LENGTH = 500


def _clean_domains(domains: Optional[List[str]]) -> List[str]:
    return [d.strip().lower() for d in domains or [] if d and d.strip()]


class SearchService:
    """Process-wide search facade"""

    def __init__(
        self,
        settings: Optional[WebSearchSettings] = None,
        fetcher: Optional[Fetcher] = None,
        providers: Optional[Dict[str, SearchProvider]] = None,
        cache: Optional[ResultCache] = None,
        metrics: Optional[SearchMetrics] = None,
        scraper: Optional[ContentScraper] = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings

        self.retry = RetryConfig(
            max_attempts=s.retry_attempts,
            base_delay=s.retry_base_delay,
            adaptive_timeouts=s.adaptive_timeouts,
            timeout_step=s.adaptive_timeout_step,
        )
        self.fetcher = fetcher if fetcher is not None else Fetcher(
            retry=self.retry,
            timeout=s.timeout_seconds,
            user_agent=s.user_agent,
            accept_language=s.accept_language,
        )
        self.metrics = metrics if metrics is not None else SearchMetrics()

        if cache is not None:
            self.cache: Optional[ResultCache] = cache
        elif s.cache_enabled:
            self.cache = ResultCache(ttl_seconds=s.cache_ttl_seconds, max_entries=s.cache_max_entries)
        else:
            self.cache = None

        self.providers = providers if providers is not None else build_default_providers(self.fetcher, s)

        if scraper is not None:
            self.scraper: Optional[ContentScraper] = scraper
        elif s.enable_content_extraction:
            self.scraper = ContentScraper(
                self.fetcher,
                metrics=self.metrics,
                max_concurrent=s.scrape_concurrency,
                timeout=s.scrape_timeout_seconds,
                max_content_length=s.max_content_length,
            )
        else:
            self.scraper = None

        self.scorer = ResultScorer(ScoringWeights.from_settings(s))
        self.refiner = QueryRefiner(
            max_queries=s.refinement_max_queries,
            term_threshold=s.refinement_term_threshold,
        )
        self.orchestrator = SearchOrchestrator(
            providers=self.providers,
            scorer=self.scorer,
            settings=s,
            metrics=self.metrics,
            cache=self.cache,
            scraper=self.scraper,
            refiner=self.refiner,
        )

    @property
    def deadline_seconds(self) -> float:
        if self.settings.search_deadline_seconds:
            return self.settings.search_deadline_seconds
        return 2 * self.retry.worst_case_seconds(self.settings.timeout_seconds)

    # ============================================
    # SEARCH
    # ============================================

    async def search(
        self,
        query: str,
        max_uses: Optional[int] = None,
        allowed_domains: Optional[List[str]] = None,
        blocked_domains: Optional[List[str]] = None,
        user_location: Optional[UserLocation] = None,
    ) -> SearchOutcome:
        """
        Search the web for a query.

        Args:
            query: Free-text query
            max_uses: Upper bound on backend calls for this search
            allowed_domains: Keep only results whose domain contains one of these
            blocked_domains: Drop results whose domain contains one of these
            user_location: Region hint for backends that support one

        Returns:
            SearchOutcome with ranked results and citations

        Raises:
            ValidationError: bad input
            NoResultsError: no backend returned a usable result
            SearchTimeoutError: the overall deadline expired
        """
        query = " ".join((query or "").split())
        if not query:
            raise ValidationError("Query must not be empty", field="query", code=ErrorCode.QUERY_TOO_SHORT)
        if len(query) > MAX_QUERY_LENGTH:
            raise ValidationError(
                f"Query must be at most {MAX_QUERY_LENGTH} characters",
                field="query",
                code=ErrorCode.QUERY_TOO_LONG,
                length=len(query),
            )
        if max_uses is not None and max_uses < 1:
            raise ValidationError("max_uses must be at least 1", field="max_uses", value=max_uses)

        options = SearchOptions(
            max_uses=max_uses,
            allowed_domains=_clean_domains(allowed_domains),
            blocked_domains=_clean_domains(blocked_domains),
            user_location=user_location,
        )
        deadline = self.deadline_seconds
        start_time = time.time()

        try:
            outcome = await asyncio.wait_for(self.orchestrator.search(query, options), timeout=deadline)
        except asyncio.TimeoutError:
            self.metrics.record_search_call((time.time() - start_time) * 1000, outcome="timeout")
            logger.warning(f"Search deadline of {deadline:.1f}s expired for '{query[:50]}'")
            raise SearchTimeoutError(
                message=f"Search did not finish within {deadline:.1f}s",
                timeout_seconds=deadline,
                query=query[:200],
            )
        except NoResultsError:
            self.metrics.record_search_call((time.time() - start_time) * 1000, outcome="no_results")
            raise
        except AppException:
            self.metrics.record_search_call((time.time() - start_time) * 1000, outcome="failed")
            raise

        self.metrics.record_search_call(
            (time.time() - start_time) * 1000, results_count=len(outcome.results)
        )
        return outcome

    def classify(self, query: str) -> Intent:
        return classify_query_intent(query)

    def strategy_for(self, query: str, max_uses: Optional[int] = None) -> Strategy:
        extra = ["searxng"] if "searxng" in self.providers else None
        return select_strategy(
            self.classify(query),
            max_uses=max_uses,
            iteration_cap=self.settings.max_search_iterations,
            extra_engines=extra,
        )

    # ============================================
    # HOUSEKEEPING
    # ============================================

    def stats(self) -> Dict[str, Any]:
        return {
            "metrics": self.metrics.get_summary(),
            "cache": self.cache.get_stats() if self.cache is not None else None,
            "providers": sorted(self.providers),
            "deadline_seconds": round(self.deadline_seconds, 1),
        }

    async def clear_cache(self) -> int:
        if self.cache is None:
            return 0
        return await self.cache.clear()

    async def close(self) -> None:
        await self.fetcher.close()
        logger.info("Search service closed")

    async def __aenter__(self) -> "SearchService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
