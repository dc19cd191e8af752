"""
In-memory TTL cache for final search outcomes.

Read-through/write-through from the orchestrator's point of view:
- key is "<normalized query>:<intent>", plus an options digest when the
  caller narrowed the search (domain filters, max_uses, location)
- an entry older than the TTL is never returned; lookups drop it lazily and
  sweep() removes every expired entry
- past max_entries the oldest entry is evicted (age-based, not LRU)

Outcomes are deep-copied in and out, so a cached value is never mutated by
the search call that produced it or by any caller that reads it.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .models import Intent, SearchOutcome

logger = logging.getLogger("websearch.result_cache")


def make_cache_key(query: str, intent: Intent, options: Optional[Dict[str, Any]] = None) -> str:
    """
    Build the cache key for a search call.

    Args:
        query: Raw query (case and whitespace are normalized)
        intent: Classified intent
        options: Search options that change the answer; falsy values are ignored

    Returns:
        "query:intent" or "query:intent:digest"
    """
    normalized = " ".join(query.lower().split())
    key = f"{normalized}:{intent.value}"
    significant = {k: v for k, v in (options or {}).items() if v}
    if significant:
        payload = json.dumps(significant, sort_keys=True, default=str)
        key = f"{key}:{hashlib.sha256(payload.encode()).hexdigest()[:16]}"
    return key


@dataclass
class CacheEntry:
    key: str
    value: SearchOutcome
    stored_at: float


class ResultCache:
    """Concurrency-safe TTL cache keyed by query and intent"""

    def __init__(
        self,
        ttl_seconds: float = 21600,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    async def get(self, key: str) -> Optional[SearchOutcome]:
        """Return a copy of the cached outcome, or None on miss/expiry"""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key[:60]}")
                return None
            return entry.value.model_copy(deep=True)

    async def put(self, key: str, outcome: SearchOutcome) -> None:
        """Store a copy of the outcome, sweeping and evicting as needed"""
        async with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(key=key, value=outcome.model_copy(deep=True), stored_at=now)
            if len(self._entries) > self.max_entries:
                self._sweep_locked(now)
            while len(self._entries) > self.max_entries:
                oldest = min(self._entries.values(), key=lambda e: e.stored_at)
                del self._entries[oldest.key]
                logger.debug(f"Cache full, evicted oldest entry: {oldest.key[:60]}")

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.info(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    async def sweep(self) -> int:
        """Remove every expired entry; returns how many were removed"""
        async with self._lock:
            return self._sweep_locked(self._clock())

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache cleared ({count} entries)")
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        now = self._clock()
        valid = sum(1 for e in self._entries.values() if not self._is_expired(e, now))
        return {
            "total_entries": len(self._entries),
            "valid_entries": valid,
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
        }
