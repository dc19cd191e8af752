"""
Search and Enrichment Metrics

Counters for:
1. Backend calls per provider: issued, succeeded, failed, results, latency
2. Rate-limit hits per provider with an exponential backoff window
   (5s doubling per consecutive hit, capped at 5 minutes); a provider
   inside its window is skipped by the orchestrator
3. Enrichment (page scrape) attempts by domain, with failure reasons
4. Cache hits/misses and whole-search outcomes

One instance is owned by the SearchService and shared by concurrent search
calls; every mutation takes the lock. Backoff windows are measured on an
injectable monotonic clock.

Usage:
    metrics = SearchMetrics()
    metrics.record_search("duckduckgo", query, results_count, duration_ms)
    metrics.record_rate_limit("bing")
    available, reason = metrics.is_provider_available("bing")
"""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Optional, Tuple

logger = logging.getLogger("websearch.search_metrics")

BACKOFF_BASE_SECONDS = 5
BACKOFF_CAP_SECONDS = 300

SEARCH_OUTCOMES = ("success", "no_results", "timeout", "failed")

# Enrichment stats are kept for at most this many domains
MAX_TRACKED_DOMAINS = 500


@dataclass
class ProviderStats:
    """Counters for one search backend"""
    name: str
    total_searches: int = 0
    successful_searches: int = 0
    failed_searches: int = 0
    total_results: int = 0
    total_duration_ms: float = 0.0
    last_error: Optional[str] = None
    rate_limit_hits: int = 0
    # monotonic deadline of the current backoff window
    backoff_until: Optional[float] = None

    @property
    def success_rate(self) -> float:
        return self.successful_searches / self.total_searches if self.total_searches else 0.0

    @property
    def avg_duration_ms(self) -> float:
        """Mean latency of successful calls"""
        return self.total_duration_ms / self.successful_searches if self.successful_searches else 0.0

    def get_backoff_seconds(self) -> int:
        if self.rate_limit_hits <= 0:
            return 0
        return min(BACKOFF_BASE_SECONDS * 2 ** (self.rate_limit_hits - 1), BACKOFF_CAP_SECONDS)

    def backoff_remaining(self, now: float) -> float:
        if self.backoff_until is None:
            return 0.0
        return max(0.0, self.backoff_until - now)


@dataclass
class DomainStats:
    """Enrichment attempts against one domain"""
    domain: str
    total_attempts: int = 0
    successful_scrapes: int = 0
    total_content_chars: int = 0
    failure_reasons: Counter = field(default_factory=Counter)

    @property
    def success_rate(self) -> float:
        return self.successful_scrapes / self.total_attempts if self.total_attempts else 0.0


class SearchMetrics:
    """Thread-safe counters for backends, enrichment, cache and search outcomes."""

    def __init__(
        self,
        max_recent_calls: int = 100,
        max_domains: int = MAX_TRACKED_DOMAINS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lock = threading.Lock()
        self._clock = clock
        self._max_domains = max_domains
        self._providers: Dict[str, ProviderStats] = {}
        self._domains: Dict[str, DomainStats] = {}
        self._recent_calls: Deque[Dict[str, Any]] = deque(maxlen=max_recent_calls)
        self._outcomes: Counter = Counter()
        self._cache: Counter = Counter()
        self._search_ms = 0.0
        self._final_results = 0
        self._started_at = clock()

    # ----------------------------------------
    # Whole-search and cache totals
    # ----------------------------------------

    @property
    def total_searches(self) -> int:
        return sum(self._outcomes.values())

    @property
    def no_result_searches(self) -> int:
        return self._outcomes["no_results"]

    @property
    def timed_out_searches(self) -> int:
        return self._outcomes["timeout"]

    @property
    def failed_searches(self) -> int:
        return self._outcomes["failed"]

    @property
    def cache_hits(self) -> int:
        return self._cache["hit"]

    @property
    def cache_misses(self) -> int:
        return self._cache["miss"]

    def record_cache_lookup(self, hit: bool) -> None:
        with self._lock:
            self._cache["hit" if hit else "miss"] += 1

    def record_search_call(self, duration_ms: float, results_count: int = 0, outcome: str = "success") -> None:
        """Record one whole search call (outcome: success, no_results, timeout or failed)"""
        if outcome not in SEARCH_OUTCOMES:
            raise ValueError(f"unknown search outcome: {outcome}")
        with self._lock:
            self._outcomes[outcome] += 1
            self._search_ms += duration_ms
            self._final_results += results_count

    # ----------------------------------------
    # Per-backend calls and rate limits
    # ----------------------------------------

    def _provider(self, name: str) -> ProviderStats:
        stats = self._providers.get(name)
        if stats is None:
            stats = self._providers[name] = ProviderStats(name=name)
        return stats

    def record_search(
        self,
        provider: str,
        query: str,
        results_count: int,
        duration_ms: float,
        success: bool = True,
        error: Optional[str] = None
    ) -> None:
        """Record one backend call"""
        with self._lock:
            stats = self._provider(provider)
            stats.total_searches += 1
            if success:
                stats.successful_searches += 1
                stats.total_results += results_count
                stats.total_duration_ms += duration_ms
            else:
                stats.failed_searches += 1
                stats.last_error = error
            self._recent_calls.append({
                "at": datetime.now(timezone.utc).isoformat(),
                "provider": provider,
                "query": query[:100],
                "results": results_count,
                "duration_ms": round(duration_ms, 1),
                "error": error,
            })

        logger.info(
            f"[BACKEND] {provider} {'ok' if success else 'failed'}: '{query[:50]}' "
            f"-> {results_count} results in {duration_ms:.0f}ms"
        )

    def record_rate_limit(self, provider: str) -> int:
        """
        Count a 429 from a backend and open its backoff window.

        Returns:
            Length of the new window in seconds
        """
        with self._lock:
            stats = self._provider(provider)
            stats.rate_limit_hits += 1
            backoff = stats.get_backoff_seconds()
            stats.backoff_until = self._clock() + backoff
            hits = stats.rate_limit_hits

        logger.warning(f"[RATE_LIMIT] {provider} hit #{hits}, skipping it for {backoff}s")
        return backoff

    def reset_rate_limit(self, provider: str) -> None:
        """A successful call closes the window and forgets one hit"""
        with self._lock:
            stats = self._providers.get(provider)
            if stats is None:
                return
            stats.rate_limit_hits = max(0, stats.rate_limit_hits - 1)
            stats.backoff_until = None

    def is_provider_available(self, provider: str) -> Tuple[bool, str]:
        """
        Whether the orchestrator may call this backend right now.

        Returns:
            (is_available, reason)
        """
        with self._lock:
            stats = self._providers.get(provider)
            if stats is None:
                return True, "no stats yet"
            remaining = stats.backoff_remaining(self._clock())
        if remaining > 0:
            return False, f"rate limited, {remaining:.0f}s remaining"
        return True, "available"

    def get_provider_stats(self, provider: str) -> Optional[ProviderStats]:
        with self._lock:
            return self._providers.get(provider)

    # ----------------------------------------
    # Enrichment
    # ----------------------------------------

    def record_scrape(
        self,
        domain: str,
        success: bool,
        content_length: int = 0,
        failure_reason: Optional[str] = None
    ) -> None:
        with self._lock:
            stats = self._domains.get(domain)
            if stats is None:
                if len(self._domains) >= self._max_domains:
                    self._evict_domain()
                stats = self._domains[domain] = DomainStats(domain=domain)
            stats.total_attempts += 1
            if success:
                stats.successful_scrapes += 1
                stats.total_content_chars += content_length
            elif failure_reason:
                stats.failure_reasons[failure_reason] += 1

        logger.debug(
            f"[SCRAPE] {domain}: "
            + (f"{content_length:,} chars" if success else f"failed ({failure_reason or 'unknown'})")
        )

    def _evict_domain(self) -> None:
        """Forget the least-attempted domain (oldest first on ties); caller holds the lock"""
        victim = min(self._domains.values(), key=lambda d: d.total_attempts)
        del self._domains[victim.domain]

    # ----------------------------------------
    # Reporting
    # ----------------------------------------

    def get_summary(self) -> Dict[str, Any]:
        """JSON-serializable snapshot of every counter"""
        with self._lock:
            now = self._clock()
            total = sum(self._outcomes.values())
            lookups = self._cache["hit"] + self._cache["miss"]
            return {
                "uptime_seconds": int(now - self._started_at),
                "searches": {
                    "total": total,
                    "no_results": self._outcomes["no_results"],
                    "timeouts": self._outcomes["timeout"],
                    "failed": self._outcomes["failed"],
                    "avg_duration_ms": round(self._search_ms / total, 1) if total else 0.0,
                    "avg_results": round(self._final_results / total, 2) if total else 0.0,
                },
                "cache": {
                    "hits": self._cache["hit"],
                    "misses": self._cache["miss"],
                    "hit_rate": round(self._cache["hit"] / lookups, 3) if lookups else 0.0,
                },
                "providers": {
                    name: {
                        "total": s.total_searches,
                        "successful": s.successful_searches,
                        "failed": s.failed_searches,
                        "success_rate": round(s.success_rate, 3),
                        "total_results": s.total_results,
                        "avg_duration_ms": round(s.avg_duration_ms, 1),
                        "rate_limit_hits": s.rate_limit_hits,
                        "backoff_remaining_seconds": round(s.backoff_remaining(now), 1),
                        "last_error": s.last_error,
                    }
                    for name, s in self._providers.items()
                },
                "domains": {
                    name: {
                        "attempts": d.total_attempts,
                        "successful": d.successful_scrapes,
                        "success_rate": round(d.success_rate, 3),
                        "failure_reasons": dict(d.failure_reasons),
                    }
                    for name, d in self._domains.items()
                },
                "recent_calls": list(self._recent_calls)[-10:],
            }

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()
            self._domains.clear()
            self._recent_calls.clear()
            self._outcomes.clear()
            self._cache.clear()
            self._search_ms = 0.0
            self._final_results = 0
