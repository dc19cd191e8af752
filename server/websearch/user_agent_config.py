"""
Centralized User-Agent Configuration

HTML result pages (DuckDuckGo, Bing) are fetched with a browser-like
User-Agent; JSON APIs (MediaWiki, StackExchange, GitHub, Reddit, Semantic
Scholar) get a descriptive bot identifier, which several of them require.

Format: WebSearch/1.0 (Component/1.0; Purpose; +https://github.com/websearch-orchestrator)
"""

from typing import Dict

BOT_NAME = "WebSearch"
BOT_VERSION = "1.0"
BOT_URL = "https://github.com/websearch-orchestrator"

USER_AGENT_TEMPLATE = "{bot}/{version} ({component}/{comp_version}; {purpose}; +{url})"

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.8,*/*;q=0.7"
JSON_ACCEPT = "application/json"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"


def build_user_agent(
    component: str,
    purpose: str,
    component_version: str = "1.0"
) -> str:
    """
    Build a standardized User-Agent string.

    Args:
        component: Name of the component (e.g., "Searcher", "Scraper")
        purpose: Brief description of purpose (e.g., "Content Extraction")
        component_version: Version of the component

    Returns:
        Formatted User-Agent string
    """
    return USER_AGENT_TEMPLATE.format(
        bot=BOT_NAME,
        version=BOT_VERSION,
        component=component,
        comp_version=component_version,
        purpose=purpose,
        url=BOT_URL
    )


# Browser-like User-Agent for result pages that reject bots
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class UserAgents:
    """User-Agent strings per component."""

    # JSON search APIs
    SEARCH_CLIENT = build_user_agent("Searcher", "Web Search")

    # HTML result pages and content enrichment
    BROWSER = BROWSER_USER_AGENT


def accept_language_for(country: str) -> str:
    """Accept-Language header biased toward a country, English fallback."""
    country = country.upper()
    primary = COUNTRY_LANGUAGES.get(country, "en")
    if primary == "en":
        return f"en-{country},en;q=0.9"
    return f"{primary}-{country},{primary};q=0.9,en;q=0.8"


COUNTRY_LANGUAGES: Dict[str, str] = {
    "US": "en", "GB": "en", "CA": "en", "AU": "en", "NZ": "en", "IE": "en",
    "IN": "en", "DE": "de", "AT": "de", "CH": "de", "FR": "fr", "BE": "fr",
    "ES": "es", "MX": "es", "AR": "es", "IT": "it", "NL": "nl", "PT": "pt",
    "BR": "pt", "JP": "ja", "KR": "ko", "CN": "zh", "TW": "zh", "RU": "ru",
    "PL": "pl", "SE": "sv", "NO": "no", "DK": "da", "FI": "fi",
}
