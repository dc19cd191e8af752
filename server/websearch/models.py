"""
Data models for the web search orchestrator.

Core shapes: SearchResult (one backend hit, scored in place), Citation
(read-only projection of a final result) and SearchOutcome (what a search
call returns and what the cache stores). Request/response models for the
HTTP layer follow the {success, data, meta, errors} envelope.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Intent(str, Enum):
    """What kind of answer a query is looking for"""
    FACTUAL = "factual"
    TUTORIAL = "tutorial"
    COMPARISON = "comparison"
    TECHNICAL = "technical"
    NEWS = "news"
    ACADEMIC = "academic"
    SHOPPING = "shopping"
    LOCAL = "local"
    TROUBLESHOOTING = "troubleshooting"
    GENERAL = "general"


# ============================================
# CORE RESULT SHAPES
# ============================================

class SearchResult(BaseModel):
    """A single result produced by one backend adapter call"""
    title: str
    url: str
    snippet: Optional[str] = None
    content: Optional[str] = None  # set by enrichment only
    source_domain: str
    source_name: str
    source_priority: int = 0
    content_type: Optional[str] = None
    intent: Intent = Intent.GENERAL
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    authority_score: float = Field(default=0.0, ge=0.0, le=1.0)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    freshness_score: float = Field(default=0.0, ge=0.0, le=1.0)
    intent_boost: float = Field(default=0.0, ge=0.0, le=1.0)
    final_score: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("url")
    @classmethod
    def validate_absolute_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"url must be absolute http(s), got {v!r}")
        return v


class Citation(BaseModel):
    """Read-only projection of a top result"""
    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    domain: str
    excerpt: str = ""


class SearchMetadata(BaseModel):
    """Bookkeeping for one search call"""
    searches_performed: int = 0
    queries_used: List[str] = Field(default_factory=list)
    processing_time_ms: int = 0
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    intent: Optional[Intent] = None
    engines_used: List[str] = Field(default_factory=list)


class SearchOutcome(BaseModel):
    """Final answer of a search call; immutable once built"""
    model_config = ConfigDict(frozen=True)

    query_used: str
    results: List[SearchResult] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    metadata: SearchMetadata = Field(default_factory=SearchMetadata)


class UserLocation(BaseModel):
    """Coarse location hint for backends that support a region parameter"""
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2 code")

    @field_validator("country")
    @classmethod
    def normalize_country(cls, v: str) -> str:
        return v.upper()


# ============================================
# HTTP REQUEST / RESPONSE MODELS
# ============================================

class WebSearchRequest(BaseModel):
    """Request body for POST /api/v1/search/web"""
    query: str = Field(..., min_length=1, max_length=500, description="Free-text search query")
    max_uses: Optional[int] = Field(default=None, ge=1, le=50, description="Upper bound on backend calls")
    allowed_domains: Optional[List[str]] = Field(default=None, description="Keep only domains containing one of these")
    blocked_domains: Optional[List[str]] = Field(default=None, description="Drop domains containing one of these")
    user_location: Optional[UserLocation] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "rust async await syntax error",
                "max_uses": 5,
                "blocked_domains": ["pinterest.com"],
                "user_location": {"country": "US"}
            }
        }
    )


class ClassifyRequest(BaseModel):
    """Request body for POST /api/v1/search/classify"""
    query: str = Field(..., min_length=1, max_length=500)
    max_uses: Optional[int] = Field(default=None, ge=1, le=50)


class ResponseMeta(BaseModel):
    """Envelope metadata"""
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    version: str = "1.0.0"


class WebSearchResponse(BaseModel):
    """Envelope for a successful search"""
    success: bool = True
    data: SearchOutcome
    meta: ResponseMeta = Field(default_factory=ResponseMeta)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
