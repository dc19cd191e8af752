"""
Plain-text rendering of search outcomes and the static fallback list
handed to callers when a search produces nothing.
"""

from typing import Dict, List

from .models import SearchOutcome
from .text_utils import tokenize, truncate_text

CONTENT_PREVIEW_LENGTH = 200

TOPIC_RESOURCES: Dict[str, List[Dict[str, str]]] = {
    "rust": [
        {"title": "The Rust Programming Language", "url": "https://doc.rust-lang.org/book/"},
        {"title": "Rust by Example", "url": "https://doc.rust-lang.org/rust-by-example/"},
        {"title": "Rust Standard Library", "url": "https://doc.rust-lang.org/std/"},
    ],
    "python": [
        {"title": "Python Documentation", "url": "https://docs.python.org/3/"},
        {"title": "Python Tutorial", "url": "https://docs.python.org/3/tutorial/"},
    ],
    "javascript": [
        {"title": "MDN JavaScript Guide", "url": "https://developer.mozilla.org/en-US/docs/Web/JavaScript/Guide"},
        {"title": "JavaScript Reference", "url": "https://developer.mozilla.org/en-US/docs/Web/JavaScript/Reference"},
    ],
    "git": [
        {"title": "Pro Git Book", "url": "https://git-scm.com/book"},
        {"title": "Git Documentation", "url": "https://git-scm.com/docs"},
    ],
}

TOPIC_ALIASES = {"js": "javascript", "node": "javascript", "nodejs": "javascript", "py": "python", "cargo": "rust"}

GENERAL_RESOURCES: List[Dict[str, str]] = [
    {"title": "Stack Overflow", "url": "https://stackoverflow.com/"},
    {"title": "MDN Web Docs", "url": "https://developer.mozilla.org/"},
    {"title": "GitHub", "url": "https://github.com/"},
    {"title": "Wikipedia", "url": "https://en.wikipedia.org/"},
]


def format_search_outcome(outcome: SearchOutcome) -> str:
    """Render an outcome as a numbered, markdown-flavoured text block"""
    query = outcome.query_used
    if not outcome.results:
        return f"No search results found for '{query}'"

    lines = [f"Search results for '{query}' ({len(outcome.results)} results):", ""]
    for index, result in enumerate(outcome.results, start=1):
        lines.append(f"{index}. **{result.title}**")
        lines.append(f"   URL: {result.url}")
        lines.append(f"   Source: {result.source_domain} (score: {result.final_score:.2f})")
        if result.snippet:
            lines.append(f"   Snippet: {result.snippet}")
        if result.content:
            lines.append(f"   Content: {truncate_text(result.content, CONTENT_PREVIEW_LENGTH)}")
        lines.append("")

    if outcome.citations:
        lines.append("Sources:")
        for index, citation in enumerate(outcome.citations, start=1):
            lines.append(f"[{index}] {citation.title} - {citation.url}")

    return "\n".join(lines).rstrip()


def get_fallback_resources(query: str) -> List[Dict[str, str]]:
    """
    Static documentation links for a query that found nothing.

    Topic-specific docs when the query names a known language or tool,
    otherwise a handful of general developer and reference sites.
    """
    topics = []
    for token in tokenize(query or ""):
        topic = TOPIC_ALIASES.get(token, token)
        if topic in TOPIC_RESOURCES and topic not in topics:
            topics.append(topic)

    resources: List[Dict[str, str]] = []
    for topic in topics:
        resources.extend(TOPIC_RESOURCES[topic])

    return resources or list(GENERAL_RESOURCES)
