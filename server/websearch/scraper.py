"""
Content Scraper - best-effort main-content excerpts for top results

Used by the orchestrator's enrichment phase. Each page is fetched through
the shared Fetcher with a short timeout and a single retry, then:
1. script/style/nav/header/footer/aside/form/noscript are removed
2. intent-specific selectors are tried first (answers for Q&A, README for
   repositories, article bodies for news), then generic main/article blocks
3. if no block holds enough text, the first paragraphs are joined
4. the excerpt must pass a quality check (length, word count, vocabulary
   diversity, few boilerplate phrases) or it is discarded

A failed fetch or a low-quality page yields None; it never raises.
"""

import logging
import re
from functools import partial
from typing import Dict, List, Optional, Sequence

import aiometer
from bs4 import BeautifulSoup

from core.exceptions import AppException

from .fetcher import Fetcher
from .models import Intent
from .search_metrics import SearchMetrics
from .text_utils import extract_domain, truncate_text

logger = logging.getLogger("websearch.scraper")

STRIP_TAGS = ["script", "style", "nav", "header", "footer", "aside", "noscript", "form", "iframe", "svg"]

GENERIC_SELECTORS = [
    "main",
    "article",
    "[role=main]",
    "#content",
    ".content",
    "#main-content",
    ".post-content",
    ".entry-content",
]

INTENT_SELECTORS: Dict[Intent, List[str]] = {
    Intent.TECHNICAL: [".s-prose", ".js-post-body", ".markdown-body", ".highlight", "pre"],
    Intent.TROUBLESHOOTING: [".s-prose", ".js-post-body", ".answer", ".markdown-body", ".comment-body"],
    Intent.TUTORIAL: [".tutorial", ".guide", ".markdown-body", ".documentation", ".docs-content"],
    Intent.NEWS: [".article-body", ".story-body", "[itemprop=articleBody]"],
    Intent.ACADEMIC: [".abstract", "#abstract", "section.abstract", ".paper-abstract"],
    Intent.FACTUAL: ["#mw-content-text", ".mw-parser-output"],
}

BOILERPLATE_PATTERNS = [
    "cookie", "subscribe", "sign up", "log in", "javascript is disabled",
    "enable javascript", "advertisement", "all rights reserved",
    "privacy policy", "terms of service", "accept all",
]

MIN_BLOCK_CHARS = 200
MAX_PARAGRAPHS = 15
MIN_PARAGRAPH_CHARS = 20


def is_high_quality_content(text: str) -> bool:
    """Reject short, repetitive or boilerplate-heavy excerpts"""
    if len(text) < 50:
        return False
    words = text.lower().split()
    if len(words) < 15:
        return False
    if len(set(words)) / len(words) < 0.3:
        return False
    lowered = text.lower()
    spam_hits = sum(1 for p in BOILERPLATE_PATTERNS if p in lowered)
    return spam_hits < 3


def _block_text(element) -> str:
    return re.sub(r"\s+", " ", element.get_text(" ", strip=True)).strip()


def extract_main_content(html: str, intent: Intent, max_length: int = 5000) -> Optional[str]:
    """Pick the best content block of a page; None when nothing usable remains"""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    for selector in INTENT_SELECTORS.get(intent, []) + GENERIC_SELECTORS:
        blocks = soup.select(selector)
        if not blocks:
            continue
        text = " ".join(_block_text(b) for b in blocks[:5])
        if len(text) >= MIN_BLOCK_CHARS:
            return truncate_text(text, max_length)

    paragraphs = [
        _block_text(p) for p in soup.find_all("p")
    ]
    paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_CHARS][:MAX_PARAGRAPHS]
    if paragraphs:
        return truncate_text(" ".join(paragraphs), max_length)

    body = soup.body or soup
    text = _block_text(body)
    return truncate_text(text, max_length) if text else None


class ContentScraper:
    """Concurrent, bounded page enrichment."""

    def __init__(
        self,
        fetcher: Fetcher,
        metrics: Optional[SearchMetrics] = None,
        max_concurrent: int = 3,
        timeout: float = 8.0,
        max_content_length: int = 5000,
    ):
        self.fetcher = fetcher
        self.metrics = metrics
        self.max_concurrent = max_concurrent
        self.timeout = min(timeout, 10.0)
        self.max_content_length = max_content_length

    def _record(self, url: str, success: bool, content_length: int = 0, reason: Optional[str] = None) -> None:
        if self.metrics is not None:
            self.metrics.record_scrape(extract_domain(url), success, content_length, reason)

    async def scrape_url(self, url: str, intent: Intent = Intent.GENERAL) -> Optional[str]:
        """Fetch one page and return a quality excerpt, or None"""
        try:
            response = await self.fetcher.fetch(url, timeout=self.timeout, max_attempts=2)
        except AppException as e:
            logger.debug(f"Enrichment fetch failed for {url[:80]}: {e.message}")
            self._record(url, False, reason="fetch_failed")
            return None

        content_type = response.headers.get("content-type", "").lower()
        if content_type and "html" not in content_type and "text/plain" not in content_type:
            self._record(url, False, reason="unsupported_content_type")
            return None

        if "text/plain" in content_type:
            text = truncate_text(re.sub(r"\s+", " ", response.text).strip(), self.max_content_length)
        else:
            text = extract_main_content(response.text, intent, self.max_content_length)

        if not text or not is_high_quality_content(text):
            self._record(url, False, reason="low_quality")
            return None

        self._record(url, True, content_length=len(text))
        return text

    async def _scrape_guarded(self, url: str, intent: Intent) -> Optional[str]:
        try:
            return await self.scrape_url(url, intent)
        except Exception as e:
            logger.warning(f"Enrichment error for {url[:80]}: {e}")
            self._record(url, False, reason=type(e).__name__)
            return None

    async def scrape_urls(self, urls: Sequence[str], intent: Intent = Intent.GENERAL) -> Dict[str, Optional[str]]:
        """
        Scrape several pages with at most max_concurrent in flight.

        Returns:
            url -> excerpt (None where extraction failed)
        """
        unique_urls = list(dict.fromkeys(urls))
        if not unique_urls:
            return {}

        jobs = [partial(self._scrape_guarded, url, intent) for url in unique_urls]
        results = await aiometer.run_all(jobs, max_at_once=self.max_concurrent)
        scraped: Dict[str, Optional[str]] = dict(zip(unique_urls, results))

        success = sum(1 for v in scraped.values() if v)
        logger.info(f"Enriched {success}/{len(unique_urls)} pages")
        return scraped
