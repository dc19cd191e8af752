"""
Search Backend Adapters

One adapter per search source, all behind the same capability:
    name, priority, rate_limit_delay, supports_intent(intent),
    search(query, intent, location) -> List[SearchResult]

Registry (fixed, curated per intent by the strategy table):
1. duckduckgo       - HTML results page, redirect links decoded
2. bing             - HTML results page, tracking links decoded
3. wikipedia        - MediaWiki search API, declines fresh/how-to queries
4. stackoverflow    - StackExchange search API (technical intents only)
5. github           - GitHub repository search API (technical intents only)
6. reddit           - Reddit search JSON (discussion-friendly intents)
7. semantic_scholar - Semantic Scholar paper search (academic/factual)
8. searxng          - optional self-hosted meta-search (when configured)

Every request goes through the shared Fetcher. FetchError (transport or
non-2xx after retries) and ParseError (unexpected markup/JSON) propagate
to the orchestrator, which skips the backend for that query.
"""

import asyncio
import base64
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import parse_qs, quote, urlparse

import httpx
from bs4 import BeautifulSoup

from core.exceptions import FetchError, ParseError

from .fetcher import Fetcher
from .models import Intent, SearchResult, UserLocation
from .query_classifier import TUTORIAL_MARKERS
from .scoring import infer_content_type
from .text_utils import (
    clean_html_text,
    contains_phrase,
    extract_domain,
    has_freshness_marker,
    is_quality_result,
    truncate_text,
)
from .user_agent_config import COUNTRY_LANGUAGES, JSON_ACCEPT, UserAgents, accept_language_for

logger = logging.getLogger("websearch.search_providers")

SNIPPET_MAX_LENGTH = 300
ALL_INTENTS: FrozenSet[Intent] = frozenset(Intent)
TECHNICAL_INTENTS: FrozenSet[Intent] = frozenset(
    {Intent.TECHNICAL, Intent.TUTORIAL, Intent.TROUBLESHOOTING}
)


class SearchProvider(ABC):
    """Base class for search backends"""

    name: str = "base"
    priority: int = 5
    rate_limit_delay: float = 0.0  # seconds between requests to this backend
    supported_intents: FrozenSet[Intent] = ALL_INTENTS
    json_api: bool = False

    def __init__(
        self,
        fetcher: Fetcher,
        max_results: int = 8,
        timeout: Optional[float] = None,
    ):
        self.fetcher = fetcher
        self.max_results = max_results
        self.timeout = timeout
        self._throttle_lock = asyncio.Lock()
        self._last_request = 0.0

    def supports_intent(self, intent: Intent) -> bool:
        return intent in self.supported_intents

    def is_suitable(self, query: str, intent: Intent) -> bool:
        """Extra per-backend gate beyond supports_intent"""
        return True

    async def _respect_rate_limit(self) -> None:
        """Keep at least rate_limit_delay seconds between requests"""
        if self.rate_limit_delay <= 0:
            return
        async with self._throttle_lock:
            wait = self.rate_limit_delay - (time.monotonic() - self._last_request)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request = time.monotonic()

    def _headers(self, location: Optional[UserLocation]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.json_api:
            headers["Accept"] = JSON_ACCEPT
            headers["User-Agent"] = UserAgents.SEARCH_CLIENT
        if location is not None:
            headers["Accept-Language"] = accept_language_for(location.country)
        return headers

    async def search(
        self,
        query: str,
        intent: Intent,
        location: Optional[UserLocation] = None,
    ) -> List[SearchResult]:
        """
        Run one backend search.

        Returns an empty list immediately for unsupported or unsuitable
        queries. Raises FetchError or ParseError on failure.
        """
        if not self.supports_intent(intent):
            logger.debug(f"{self.name} does not handle {intent.value} queries")
            return []
        if not self.is_suitable(query, intent):
            logger.debug(f"{self.name} declined unsuitable query: {query[:60]}")
            return []

        await self._respect_rate_limit()

        url, params = self.build_request(query, intent, location)
        try:
            response = await self.fetcher.fetch(
                url,
                params=params,
                headers=self._headers(location),
                timeout=self.timeout,
            )
        except FetchError as e:
            raise e.for_backend(self.name) from e
        try:
            results = self.parse(response, intent)
        except ParseError:
            raise
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ParseError(self.name, f"unexpected response shape: {e}") from e

        logger.debug(f"{self.name} returned {len(results)} results for '{query[:50]}'")
        return results[:self.max_results]

    @abstractmethod
    def build_request(
        self,
        query: str,
        intent: Intent,
        location: Optional[UserLocation],
    ) -> Tuple[str, Dict[str, Any]]:
        """Return (url, query params) for one search request"""

    @abstractmethod
    def parse(self, response: httpx.Response, intent: Intent) -> List[SearchResult]:
        """Turn a 2xx response into results"""

    def make_result(
        self,
        title: Optional[str],
        url: Optional[str],
        snippet: Optional[str],
        intent: Intent,
    ) -> Optional[SearchResult]:
        """Clean and validate one hit; None when it should be dropped"""
        title = clean_html_text(title)
        snippet = clean_html_text(snippet)
        url = (url or "").strip()
        if not is_quality_result(title, url, snippet):
            return None
        if snippet:
            snippet = truncate_text(snippet, SNIPPET_MAX_LENGTH)
        domain = extract_domain(url)
        return SearchResult(
            title=title,
            url=url,
            snippet=snippet or None,
            source_domain=domain,
            source_name=self.name,
            source_priority=self.priority,
            content_type=infer_content_type(domain, url),
            intent=intent,
        )

    def _collect(self, hits, intent: Intent) -> List[SearchResult]:
        results = []
        for title, url, snippet in hits:
            result = self.make_result(title, url, snippet, intent)
            if result is not None:
                results.append(result)
            if len(results) >= self.max_results:
                break
        return results

    def _json(self, response: httpx.Response) -> Dict[str, Any]:
        data = response.json()
        if not isinstance(data, dict):
            raise ParseError(self.name, f"expected a JSON object, got {type(data).__name__}")
        return data


# ============================================
# HTML RESULT PAGES
# ============================================

def resolve_duckduckgo_url(href: str) -> str:
    """Decode DuckDuckGo's /l/?uddg= redirect into the target URL"""
    if href.startswith("//"):
        href = "https:" + href
    parsed = urlparse(href)
    if parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    return href


def resolve_bing_url(href: str) -> str:
    """Decode Bing's /ck/a?u=a1<base64> tracking link into the target URL"""
    parsed = urlparse(href)
    if "bing.com" in parsed.netloc and parsed.path.startswith("/ck/"):
        encoded = parse_qs(parsed.query).get("u", [""])[0]
        if encoded.startswith("a1"):
            encoded = encoded[2:]
            padded = encoded + "=" * (-len(encoded) % 4)
            try:
                return base64.urlsafe_b64decode(padded).decode("utf-8")
            except (ValueError, UnicodeDecodeError):
                return href
    return href


class DuckDuckGoProvider(SearchProvider):
    """DuckDuckGo HTML results page (no API key required)."""

    name = "duckduckgo"
    priority = 8
    rate_limit_delay = 0.5
    BASE_URL = "https://html.duckduckgo.com/html/"

    def build_request(self, query, intent, location):
        params: Dict[str, Any] = {"q": query}
        if location is not None:
            country = "uk" if location.country == "GB" else location.country.lower()
            language = COUNTRY_LANGUAGES.get(location.country, "en")
            params["kl"] = f"{country}-{language}"
        return self.BASE_URL, params

    def parse(self, response, intent):
        soup = BeautifulSoup(response.text, "html.parser")
        hits = []
        for block in soup.select("div.result"):
            if "result--ad" in (block.get("class") or []):
                continue
            link = block.select_one("a.result__a")
            if link is None or not link.get("href"):
                continue
            snippet = block.select_one(".result__snippet")
            hits.append((
                link.get_text(" ", strip=True),
                resolve_duckduckgo_url(link["href"]),
                snippet.get_text(" ", strip=True) if snippet else None,
            ))
        return self._collect(hits, intent)


class BingProvider(SearchProvider):
    """Bing HTML results page."""

    name = "bing"
    priority = 7
    rate_limit_delay = 0.6
    BASE_URL = "https://www.bing.com/search"

    def build_request(self, query, intent, location):
        params: Dict[str, Any] = {"q": query, "count": self.max_results}
        if location is not None:
            params["cc"] = location.country
        return self.BASE_URL, params

    def parse(self, response, intent):
        soup = BeautifulSoup(response.text, "html.parser")
        hits = []
        for item in soup.select("li.b_algo"):
            link = item.select_one("h2 a")
            if link is None or not link.get("href"):
                continue
            snippet = item.select_one(".b_caption p") or item.select_one("p")
            hits.append((
                link.get_text(" ", strip=True),
                resolve_bing_url(link["href"]),
                snippet.get_text(" ", strip=True) if snippet else None,
            ))
        return self._collect(hits, intent)


# ============================================
# JSON SEARCH APIS
# ============================================

WIKIPEDIA_UNSUITABLE_MARKERS = TUTORIAL_MARKERS + ("configure", "configuration")
WIKIPEDIA_TECHNICAL_MARKERS = ("error", "bug", "implementation", "implement", "code", "exception")


class WikipediaProvider(SearchProvider):
    """MediaWiki full-text search; declines queries encyclopedic content cannot answer."""

    name = "wikipedia"
    priority = 9
    rate_limit_delay = 0.2
    json_api = True
    supported_intents = ALL_INTENTS - {Intent.SHOPPING, Intent.LOCAL, Intent.NEWS}

    def _language(self, location: Optional[UserLocation]) -> str:
        if location is None:
            return "en"
        return COUNTRY_LANGUAGES.get(location.country, "en")

    def is_suitable(self, query, intent):
        q = query.lower()
        if has_freshness_marker(q):
            return False
        if any(contains_phrase(q, m) for m in WIKIPEDIA_UNSUITABLE_MARKERS):
            return False
        if intent in (Intent.TECHNICAL, Intent.TROUBLESHOOTING) and (
            any(contains_phrase(q, m) for m in WIKIPEDIA_TECHNICAL_MARKERS)
        ):
            return False
        return True

    def build_request(self, query, intent, location):
        url = f"https://{self._language(location)}.wikipedia.org/w/api.php"
        params = {
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": self.max_results,
            "format": "json",
            "utf8": 1,
        }
        return url, params

    def parse(self, response, intent):
        data = self._json(response)
        if "error" in data:
            raise ParseError(self.name, str(data["error"].get("info", data["error"])))
        host = response.url.host
        hits = []
        for item in data["query"]["search"]:
            title = item["title"]
            page_url = f"https://{host}/wiki/{quote(title.replace(' ', '_'))}"
            hits.append((title, page_url, item.get("snippet")))
        return self._collect(hits, intent)


class StackOverflowProvider(SearchProvider):
    """StackExchange advanced search restricted to Stack Overflow."""

    name = "stackoverflow"
    priority = 9
    rate_limit_delay = 0.8
    json_api = True
    supported_intents = TECHNICAL_INTENTS
    BASE_URL = "https://api.stackexchange.com/2.3/search/advanced"

    def build_request(self, query, intent, location):
        params = {
            "order": "desc",
            "sort": "relevance",
            "q": query,
            "site": "stackoverflow",
            "pagesize": self.max_results,
            "filter": "withbody",
        }
        return self.BASE_URL, params

    def parse(self, response, intent):
        data = self._json(response)
        if "error_id" in data:
            raise ParseError(self.name, data.get("error_message", "api error"))
        hits = []
        for item in data["items"]:
            tags = ", ".join(item.get("tags", [])[:5])
            summary = (
                f"[{tags}] {item.get('answer_count', 0)} answers, score {item.get('score', 0)}"
                f"{', accepted answer' if item.get('is_answered') else ''}."
            )
            body = clean_html_text(item.get("body"))
            snippet = f"{summary} {body}" if body else summary
            hits.append((item.get("title"), item.get("link"), snippet))
        return self._collect(hits, intent)


class GitHubProvider(SearchProvider):
    """GitHub repository search (unauthenticated)."""

    name = "github"
    priority = 7
    rate_limit_delay = 0.7
    json_api = True
    supported_intents = TECHNICAL_INTENTS
    BASE_URL = "https://api.github.com/search/repositories"

    def _headers(self, location):
        headers = super()._headers(location)
        headers["Accept"] = "application/vnd.github+json"
        return headers

    def build_request(self, query, intent, location):
        return self.BASE_URL, {"q": query, "per_page": self.max_results}

    def parse(self, response, intent):
        data = self._json(response)
        hits = []
        for repo in data["items"]:
            details = []
            if repo.get("language"):
                details.append(repo["language"])
            details.append(f"{repo.get('stargazers_count', 0)} stars")
            if repo.get("updated_at"):
                details.append(f"updated {repo['updated_at'][:10]}")
            description = repo.get("description") or "No description"
            snippet = f"{description} ({', '.join(details)})"
            hits.append((repo.get("full_name"), repo.get("html_url"), snippet))
        return self._collect(hits, intent)


REDDIT_DISCUSSION_MARKERS = (
    "reddit", "opinion", "opinions", "experience", "experiences", "recommend",
    "recommendation", "thoughts", "anyone", "worth it", "advice", "should i",
    "discussion", "review",
)


class RedditProvider(SearchProvider):
    """Reddit link search; General queries need a discussion marker."""

    name = "reddit"
    priority = 6
    rate_limit_delay = 1.0
    json_api = True
    supported_intents = frozenset({
        Intent.NEWS, Intent.GENERAL, Intent.COMPARISON,
        Intent.TROUBLESHOOTING, Intent.SHOPPING,
    })
    BASE_URL = "https://www.reddit.com/search.json"

    def is_suitable(self, query, intent):
        if intent != Intent.GENERAL:
            return True
        return any(contains_phrase(query, m) for m in REDDIT_DISCUSSION_MARKERS)

    def build_request(self, query, intent, location):
        params = {
            "q": query,
            "limit": self.max_results,
            "sort": "relevance",
            "type": "link",
        }
        return self.BASE_URL, params

    def parse(self, response, intent):
        data = self._json(response)
        hits = []
        for child in data["data"]["children"]:
            post = child["data"]
            if post.get("over_18"):
                continue
            permalink = post.get("permalink", "")
            selftext = post.get("selftext") or ""
            snippet = selftext or (
                f"r/{post.get('subreddit', '')} discussion, "
                f"{post.get('num_comments', 0)} comments"
            )
            hits.append((post.get("title"), f"https://www.reddit.com{permalink}", snippet))
        return self._collect(hits, intent)


class SemanticScholarProvider(SearchProvider):
    """Semantic Scholar Graph API paper search."""

    name = "semantic_scholar"
    priority = 8
    rate_limit_delay = 1.0
    json_api = True
    supported_intents = frozenset({Intent.ACADEMIC, Intent.FACTUAL})
    BASE_URL = "https://api.semanticscholar.org/graph/v1/paper/search"

    def build_request(self, query, intent, location):
        params = {
            "query": query,
            "limit": self.max_results,
            "fields": "title,url,abstract,year,venue,citationCount",
        }
        return self.BASE_URL, params

    def parse(self, response, intent):
        data = self._json(response)
        if "data" not in data:
            if "total" in data:
                return []
            raise ParseError(self.name, str(data.get("message") or data.get("error") or "missing data"))
        hits = []
        for paper in data["data"]:
            url = paper.get("url") or f"https://www.semanticscholar.org/paper/{paper.get('paperId', '')}"
            venue = paper.get("venue") or "Unknown venue"
            summary = f"{venue} ({paper.get('year') or 'n.d.'}), {paper.get('citationCount') or 0} citations."
            abstract = paper.get("abstract")
            snippet = f"{summary} {abstract}" if abstract else summary
            hits.append((paper.get("title"), url, snippet))
        return self._collect(hits, intent)


class SearXNGProvider(SearchProvider):
    """Self-hosted SearXNG instance (JSON output must be enabled)."""

    name = "searxng"
    priority = 5
    rate_limit_delay = 0.0
    json_api = True

    def __init__(self, fetcher: Fetcher, base_url: str, max_results: int = 8, timeout: Optional[float] = None):
        super().__init__(fetcher, max_results=max_results, timeout=timeout)
        self.base_url = base_url.rstrip("/")

    def build_request(self, query, intent, location):
        params: Dict[str, Any] = {"q": query, "format": "json", "pageno": 1}
        if location is not None:
            params["language"] = f"{COUNTRY_LANGUAGES.get(location.country, 'en')}-{location.country}"
        return f"{self.base_url}/search", params

    def parse(self, response, intent):
        data = self._json(response)
        hits = [(r.get("title"), r.get("url"), r.get("content")) for r in data["results"]]
        return self._collect(hits, intent)


# ============================================
# REGISTRY
# ============================================

def build_default_providers(fetcher: Fetcher, settings) -> Dict[str, SearchProvider]:
    """
    Build the fixed backend registry.

    Args:
        fetcher: Shared Fetcher
        settings: WebSearchSettings (max_results_per_engine, timeout_seconds, searxng_url)

    Returns:
        Mapping of backend name to adapter
    """
    kwargs = {
        "max_results": settings.max_results_per_engine,
        "timeout": settings.timeout_seconds,
    }
    providers: List[SearchProvider] = [
        DuckDuckGoProvider(fetcher, **kwargs),
        BingProvider(fetcher, **kwargs),
        WikipediaProvider(fetcher, **kwargs),
        StackOverflowProvider(fetcher, **kwargs),
        GitHubProvider(fetcher, **kwargs),
        RedditProvider(fetcher, **kwargs),
        SemanticScholarProvider(fetcher, **kwargs),
    ]
    if settings.searxng_url:
        providers.append(SearXNGProvider(fetcher, settings.searxng_url, **kwargs))
    registry = {p.name: p for p in providers}
    logger.info(f"Search backends registered: {', '.join(registry)}")
    return registry
