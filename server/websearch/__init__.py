"""
Web Search Orchestrator

Intent-aware multi-backend web search:
- rule-based intent classification and per-intent backend strategies
- concurrent backend fan-out with retrying fetches and rate-limit backoff
- optional query refinement when first-phase quality is low
- multi-signal scoring, deduplication, per-domain diversity
- best-effort content enrichment, citations and a TTL result cache

Entry point is SearchService; the FastAPI routers in api/ sit on top of it.
"""

from .fetcher import Fetcher, RetryConfig
from .formatting import format_search_outcome, get_fallback_resources
from .models import (
    Citation,
    Intent,
    SearchMetadata,
    SearchOutcome,
    SearchResult,
    UserLocation,
    WebSearchRequest,
)
from .orchestrator import SearchOptions, SearchOrchestrator
from .query_classifier import classify_query_intent
from .query_refiner import QueryRefiner
from .result_cache import ResultCache, make_cache_key
from .scoring import ResultScorer, ScoringWeights
from .scraper import ContentScraper
from .search_metrics import SearchMetrics
from .search_providers import SearchProvider, build_default_providers
from .service import SearchService
from .strategy import Strategy, select_strategy

__all__ = [
    "Fetcher",
    "RetryConfig",
    "format_search_outcome",
    "get_fallback_resources",
    "Citation",
    "Intent",
    "SearchMetadata",
    "SearchOutcome",
    "SearchResult",
    "UserLocation",
    "WebSearchRequest",
    "SearchOptions",
    "SearchOrchestrator",
    "classify_query_intent",
    "QueryRefiner",
    "ResultCache",
    "make_cache_key",
    "ResultScorer",
    "ScoringWeights",
    "ContentScraper",
    "SearchMetrics",
    "SearchProvider",
    "build_default_providers",
    "SearchService",
    "Strategy",
    "select_strategy",
]
