"""
Shared pytest fixtures for web search server tests.

Nothing here touches the network: backends are replaced by FakeProvider
instances and HTTP goes through httpx.MockTransport.
"""

import asyncio
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import httpx
import pytest

# Add server directory to path
SERVER_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(SERVER_DIR))

from config.settings import WebSearchSettings
from websearch.fetcher import Fetcher, RetryConfig
from websearch.models import Intent, SearchResult
from websearch.scoring import infer_content_type
from websearch.search_providers import SearchProvider
from websearch.text_utils import extract_domain


# ============================================
# Result / Provider Helpers
# ============================================

def make_result(
    title: str,
    url: str,
    snippet: Optional[str] = None,
    source_name: str = "fake",
    priority: int = 5,
    intent: Intent = Intent.GENERAL,
) -> SearchResult:
    domain = extract_domain(url)
    return SearchResult(
        title=title,
        url=url,
        snippet=snippet,
        source_domain=domain,
        source_name=source_name,
        source_priority=priority,
        content_type=infer_content_type(domain, url),
        intent=intent,
    )


ResultsSpec = Union[List[SearchResult], Callable[[str], List[SearchResult]]]


class FakeProvider(SearchProvider):
    """In-process backend with canned results, errors or delays."""

    def __init__(
        self,
        name: str,
        results: Optional[ResultsSpec] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        priority: int = 5,
        intents: Optional[Iterable[Intent]] = None,
        suitable: bool = True,
    ):
        super().__init__(fetcher=None, max_results=50)
        self.name = name
        self.priority = priority
        if intents is not None:
            self.supported_intents = frozenset(intents)
        self.results = results if results is not None else []
        self.error = error
        self.delay = delay
        self.suitable = suitable
        self.calls: List[str] = []

    def is_suitable(self, query, intent):
        return self.suitable

    async def search(self, query, intent, location=None):
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        found = self.results(query) if callable(self.results) else self.results
        return [r.model_copy(deep=True) for r in found]

    def build_request(self, query, intent, location):
        raise NotImplementedError

    def parse(self, response, intent):
        raise NotImplementedError


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================
# Configuration Fixtures
# ============================================

@pytest.fixture
def test_settings(tmp_path) -> WebSearchSettings:
    """Settings with short timeouts and no enrichment."""
    return WebSearchSettings(
        log_path=str(tmp_path / "logs"),
        timeout_seconds=1.0,
        retry_attempts=2,
        retry_base_delay=0.01,
        concurrent_engines=4,
        max_search_iterations=8,
        enable_content_extraction=False,
        min_relevance_threshold=0.0,
        search_deadline_seconds=5.0,
        cache_enabled=True,
    )


# ============================================
# HTTP Fixtures
# ============================================

@pytest.fixture
def make_fetcher():
    """
    Factory for a Fetcher over httpx.MockTransport.

    Usage:
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="ok"))
    """
    def _make(handler, max_attempts: int = 3, base_delay: float = 0.01, timeout: float = 1.0) -> Fetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        retry = RetryConfig(max_attempts=max_attempts, base_delay=base_delay)
        return Fetcher(retry=retry, timeout=timeout, client=client)

    return _make


# ============================================
# Provider Fixtures
# ============================================

@pytest.fixture
def technical_results() -> List[SearchResult]:
    return [
        make_result(
            "Rust async await syntax error when calling function",
            "https://stackoverflow.com/questions/1001/rust-async-await-syntax-error",
            "The async await syntax in rust requires an async context; the error E0728 appears otherwise.",
            source_name="stackoverflow",
            priority=9,
        ),
        make_result(
            "tokio-rs/tokio: A runtime for writing reliable async applications with Rust",
            "https://github.com/tokio-rs/tokio",
            "A runtime for writing reliable asynchronous applications with Rust. (Rust, 25000 stars)",
            source_name="github",
            priority=7,
        ),
        make_result(
            "Async/await - Asynchronous Programming in Rust",
            "https://rust-lang.github.io/async-book/01_getting_started/04_async_await_primer.html",
            "async/await is Rust's built-in tool for writing asynchronous functions that look like synchronous code.",
            source_name="duckduckgo",
            priority=8,
        ),
    ]


@pytest.fixture
def fake_providers(technical_results):
    """A small registry covering the Technical strategy."""
    return {
        "stackoverflow": FakeProvider("stackoverflow", [technical_results[0]], priority=9),
        "github": FakeProvider("github", [technical_results[1]], priority=7),
        "duckduckgo": FakeProvider("duckduckgo", [technical_results[2]], priority=8),
        "bing": FakeProvider("bing", [], priority=7),
    }
