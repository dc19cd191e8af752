"""
Text helpers shared by the classifier, adapters, scorer and refiner.

Keyword extraction keeps hyphenated technical tokens (e.g. "e0277",
"async-await") and adds a light stem for each word so that "errors" and
"error" overlap.
"""

import html
import re
import string
from datetime import datetime, timezone
from typing import List, Optional, Set
from urllib.parse import urlparse

# Classic English function words plus a few search-noise terms
STOPWORDS = {
    "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "to", "of", "in", "for", "on", "with", "at", "by", "from", "as",
    "into", "through", "during", "before", "after", "above", "below",
    "between", "under", "again", "further", "then", "once", "here",
    "there", "when", "where", "why", "how", "all", "each", "few", "more",
    "most", "other", "some", "such", "no", "nor", "not", "only", "own",
    "same", "so", "than", "too", "very", "just", "also", "now", "what",
    "which", "who", "whom", "this", "that", "these", "those", "am", "or",
    "and", "but", "if", "because", "until", "while", "about", "against",
    "i", "me", "my", "you", "your", "he", "she", "it", "we", "they",
    "its", "our", "their", "them", "any", "get", "use", "using", "via",
    "best", "guide", "tutorial", "http", "https", "www", "com", "org",
}

FRESHNESS_MARKERS = (
    "latest", "recent", "breaking", "news", "today", "currently", "now",
    "this week", "this month", "this year",
)

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")
_METADATA_TITLE_RE = re.compile(
    r"^(\d+|page \d+|\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}|[\W_]+)$", re.IGNORECASE
)

LOW_QUALITY_PATTERNS = (
    "click here", "sign up", "log in to", "advertisement", "sponsored",
    "buy now", "free download", "casino", "porn",
)


def stem_word(word: str) -> str:
    """Apply simple stemming to normalize a word to its base form."""
    if word.endswith('ing') and len(word) > 5:
        return word[:-3]  # debugging -> debugg
    elif word.endswith('ed') and len(word) > 4:
        return word[:-2]  # fixed -> fix
    elif word.endswith('es') and len(word) > 4:
        return word[:-2]  # fixes -> fix
    elif word.endswith('s') and len(word) > 4:
        return word[:-1]  # errors -> error
    elif word.endswith('ly') and len(word) > 4:
        return word[:-2]  # slowly -> slow
    return word


def tokenize(text: str) -> List[str]:
    """Lower-case words with punctuation stripped (hyphens kept)."""
    text = text.lower()
    table = str.maketrans("", "", string.punctuation.replace("-", ""))
    return [w.strip("-") for w in text.translate(table).split() if w.strip("-")]


def extract_keywords(text: str) -> Set[str]:
    """Extract meaningful keywords from text, excluding stopwords.

    Returns original and stemmed forms for consistent matching.
    Hyphenated terms are also added without the hyphen.
    """
    keywords = set()
    for w in tokenize(text):
        if w in STOPWORDS or len(w) <= 2:
            continue
        keywords.add(w)
        stem = stem_word(w)
        if stem != w and len(stem) > 2:
            keywords.add(stem)
        if "-" in w:
            keywords.add(w.replace("-", ""))
    return keywords


def contains_phrase(text: str, phrase: str) -> bool:
    """Word-boundary containment, case-insensitive"""
    return re.search(rf"(?<!\w){re.escape(phrase.lower())}(?!\w)", text.lower()) is not None


def recent_years(now: Optional[datetime] = None, window: int = 2) -> Set[int]:
    """Current year plus the `window` preceding years"""
    year = (now or datetime.now(timezone.utc)).year
    return {year - offset for offset in range(window + 1)}


def has_freshness_marker(query: str) -> bool:
    """True when the query asks for something recent"""
    if any(contains_phrase(query, marker) for marker in FRESHNESS_MARKERS):
        return True
    years = recent_years()
    return any(int(y) in years for y in _YEAR_RE.findall(query))


def find_years(text: str) -> List[int]:
    return [int(y) for y in _YEAR_RE.findall(text)]


# ============================================
# HTML / URL HELPERS
# ============================================

def clean_html_text(text: Optional[str]) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def extract_domain(url: str) -> str:
    """Lower-cased host without a leading www."""
    netloc = urlparse(url).netloc.lower()
    if "@" in netloc:
        netloc = netloc.rsplit("@", 1)[1]
    netloc = netloc.split(":", 1)[0]
    if netloc.startswith("www."):
        netloc = netloc[4:]
    return netloc


def is_absolute_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_url(url: str) -> str:
    """https scheme, no www, no trailing slash, lower-cased"""
    url = url.strip().lower()
    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    url = url.replace("://www.", "://", 1)
    return url.rstrip("/")


def normalize_title(title: str) -> str:
    """Alphanumeric words only, single-spaced, lower-cased"""
    cleaned = re.sub(r"[^a-z0-9\s]", " ", title.lower())
    return _WS_RE.sub(" ", cleaned).strip()


def truncate_text(text: str, max_length: int) -> str:
    """Cut on a word boundary and mark the cut with an ellipsis"""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    space = cut.rfind(" ")
    if space > max_length * 0.8:
        cut = cut[:space]
    return cut.rstrip() + "..."


# ============================================
# RESULT QUALITY FILTERS
# ============================================

def is_likely_metadata(title: str) -> bool:
    """Titles that are really page numbers, dates or punctuation"""
    return bool(_METADATA_TITLE_RE.match(title.strip()))


def is_quality_result(title: str, url: str, snippet: Optional[str] = None) -> bool:
    """Cheap pre-filter applied by adapters before building a result"""
    title = title.strip()
    if len(title) < 5 or len(title) > 200:
        return False
    if is_likely_metadata(title):
        return False
    if not is_absolute_http_url(url) or len(url) > 2048:
        return False
    combined = f"{title} {snippet or ''}".lower()
    spam_hits = sum(1 for p in LOW_QUALITY_PATTERNS if p in combined)
    return spam_hits < 2
