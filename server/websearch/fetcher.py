"""
Shared HTTP Fetcher with Retry and Backoff

Every backend adapter and the content scraper go through one Fetcher so the
retry policy is uniform:
- up to N attempts per call (default 3)
- exponential backoff between attempts: base_delay * multiplier^attempt
- adaptive timeouts: each attempt gets timeout + step * attempt
- non-2xx statuses and transport errors are retried; after the last attempt
  FetchError carries the final status/error

Usage:
    from websearch.fetcher import Fetcher, RetryConfig

    fetcher = Fetcher(RetryConfig(max_attempts=3, base_delay=0.8))
    response = await fetcher.fetch("https://api.example.com/search", params={"q": query})
    data = response.json()
    await fetcher.close()
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.exceptions import FetchError

from .user_agent_config import DEFAULT_ACCEPT, DEFAULT_ACCEPT_LANGUAGE, UserAgents

logger = logging.getLogger("websearch.fetcher")


# ============================================
# CONFIGURATION
# ============================================

@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    # Total attempts including the first one
    max_attempts: int = 3

    # Base delay for exponential backoff (seconds)
    base_delay: float = 0.8

    # Exponential backoff multiplier
    backoff_multiplier: float = 2.0

    # Maximum delay cap (seconds)
    max_delay: float = 30.0

    # Grow the per-attempt timeout by timeout_step seconds each retry
    adaptive_timeouts: bool = True
    timeout_step: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Sleep before the attempt after `attempt` (zero-based)."""
        return min(self.base_delay * (self.backoff_multiplier ** attempt), self.max_delay)

    def timeout_for(self, base_timeout: float, attempt: int) -> float:
        if not self.adaptive_timeouts:
            return base_timeout
        return base_timeout + self.timeout_step * attempt

    def worst_case_seconds(self, base_timeout: float, max_attempts: Optional[int] = None) -> float:
        """Upper bound on one fetch: every attempt times out, every backoff sleeps."""
        attempts = max_attempts or self.max_attempts
        total = sum(self.timeout_for(base_timeout, a) for a in range(attempts))
        total += sum(self.delay_for(a) for a in range(attempts - 1))
        return total


# ============================================
# FETCHER
# ============================================

class Fetcher:
    """
    One HTTP GET with bounded retries.

    The underlying httpx.AsyncClient is shared and created lazily; pass a
    client in to control transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        retry: Optional[RetryConfig] = None,
        timeout: float = 20.0,
        user_agent: str = UserAgents.BROWSER,
        accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.retry = retry or RetryConfig()
        self.timeout = timeout
        self.user_agent = user_agent
        self.accept_language = accept_language
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=10)
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_headers(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        merged = {
            "User-Agent": self.user_agent,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": self.accept_language,
        }
        if headers:
            merged.update(headers)
        return merged

    async def fetch(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> httpx.Response:
        """
        GET a URL, retrying non-2xx responses and transport errors.

        Args:
            url: Absolute URL
            params: Query parameters (URL-encoded by httpx)
            headers: Extra headers merged over the defaults
            timeout: Base timeout for the first attempt (seconds)
            max_attempts: Override the configured attempt count

        Returns:
            The first 2xx httpx.Response

        Raises:
            FetchError: every attempt failed
        """
        client = await self._get_client()
        attempts = max_attempts or self.retry.max_attempts
        base_timeout = timeout if timeout is not None else self.timeout
        request_headers = self.build_headers(headers)

        last_error = "no attempt made"
        last_status: Optional[int] = None
        start_time = time.time()

        for attempt in range(attempts):
            attempt_timeout = self.retry.timeout_for(base_timeout, attempt)
            try:
                response = await client.get(
                    url,
                    params=params,
                    headers=request_headers,
                    timeout=attempt_timeout,
                )
                if 200 <= response.status_code < 300:
                    if attempt > 0:
                        logger.info(
                            f"Fetch succeeded on attempt {attempt + 1}/{attempts}: {url[:80]}"
                        )
                    return response
                last_status = response.status_code
                last_error = f"HTTP {response.status_code}"
            except httpx.TimeoutException:
                last_status = None
                last_error = f"timeout after {attempt_timeout:.1f}s"
            except httpx.HTTPError as e:
                last_status = None
                last_error = f"{type(e).__name__}: {e}"

            if attempt < attempts - 1:
                delay = self.retry.delay_for(attempt)
                logger.debug(
                    f"Fetch attempt {attempt + 1}/{attempts} failed ({last_error}), "
                    f"retrying in {delay:.2f}s: {url[:80]}"
                )
                await asyncio.sleep(delay)

        duration_ms = (time.time() - start_time) * 1000
        logger.warning(
            f"Fetch failed after {attempts} attempts in {duration_ms:.0f}ms "
            f"({last_error}): {url[:80]}"
        )
        raise FetchError(url, last_error, attempts=attempts, status_code=last_status)
