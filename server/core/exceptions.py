"""
Unified exception handling for the web search server.

Everything the search core raises on purpose is an AppException subclass,
so main.py renders one error envelope for all of them:

    {"success": false, "data": null, "meta": {...},
     "errors": [{"code": "ERR_xxxx", "message": "...", "details": {...}}]}

Per-backend failures (FetchError, ParseError) never reach the client: the
orchestrator logs them and skips the backend. Callers only ever see
ValidationError, NoResultsError and SearchTimeoutError.
"""

from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorCode(str, Enum):
    """
    Error codes carried in the response envelope.

    Code ranges:
    - 1xxx: Request validation
    - 4xxx: Search pipeline
    - 5xxx: Search backends and fetched pages
    - 9xxx: Server
    """

    # Request validation (1xxx)
    VALIDATION_ERROR = "ERR_1001"
    QUERY_TOO_SHORT = "ERR_1005"
    QUERY_TOO_LONG = "ERR_1006"

    # Search pipeline (4xxx)
    SEARCH_FAILED = "ERR_4001"
    SEARCH_TIMEOUT = "ERR_4002"
    NO_RESULTS = "ERR_4003"
    PARSE_FAILED = "ERR_4010"

    # Backends (5xxx)
    BACKEND_ERROR = "ERR_5000"
    DUCKDUCKGO_ERROR = "ERR_5001"
    BING_ERROR = "ERR_5002"
    SEARXNG_ERROR = "ERR_5003"
    WIKIPEDIA_ERROR = "ERR_5004"
    STACKOVERFLOW_ERROR = "ERR_5005"
    GITHUB_ERROR = "ERR_5006"
    REDDIT_ERROR = "ERR_5007"
    SEMANTIC_SCHOLAR_ERROR = "ERR_5008"
    FETCH_FAILED = "ERR_5010"
    RATE_LIMITED = "ERR_5029"

    # Server (9xxx)
    INTERNAL_ERROR = "ERR_9001"


BACKEND_CODES: Dict[str, ErrorCode] = {
    "duckduckgo": ErrorCode.DUCKDUCKGO_ERROR,
    "bing": ErrorCode.BING_ERROR,
    "searxng": ErrorCode.SEARXNG_ERROR,
    "wikipedia": ErrorCode.WIKIPEDIA_ERROR,
    "stackoverflow": ErrorCode.STACKOVERFLOW_ERROR,
    "github": ErrorCode.GITHUB_ERROR,
    "reddit": ErrorCode.REDDIT_ERROR,
    "semantic_scholar": ErrorCode.SEMANTIC_SCHOLAR_ERROR,
}


class AppException(Exception):
    """
    Base exception for all application errors.

    Args:
        code: ErrorCode enum value
        message: Human-readable error message
        status_code: HTTP status code the API answers with (default 400)
        details: Additional error context (optional)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """One entry of the envelope's errors list"""
        result = {"code": self.code.value, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value}, {self.message!r})"


# =============================================================================
# Caller-facing errors
# =============================================================================

class ValidationError(AppException):
    """Bad search input (empty or oversized query, non-positive max_uses)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        **details
    ):
        if field:
            details = {"field": field, **details}
        super().__init__(code=code, message=message, status_code=400, details=details)


class SearchError(AppException):
    """Base for failures of the search pipeline as a whole."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SEARCH_FAILED,
        status_code: int = 500,
        **details
    ):
        super().__init__(code=code, message=message, status_code=status_code, details=details)


class SearchTimeoutError(SearchError):
    """The overall search deadline expired; in-flight backend calls were cancelled."""

    def __init__(self, message: str = "Search timed out", timeout_seconds: Optional[float] = None, **details):
        super().__init__(
            message,
            code=ErrorCode.SEARCH_TIMEOUT,
            status_code=504,
            timeout_seconds=timeout_seconds,
            **details
        )


class NoResultsError(SearchError):
    """
    No backend produced a usable result, or the domain filters removed
    every result.
    """

    def __init__(
        self,
        message: str = "No search results found",
        query: Optional[str] = None,
        engines: Optional[List[str]] = None,
        **details
    ):
        super().__init__(
            message,
            code=ErrorCode.NO_RESULTS,
            status_code=404,
            query=query,
            engines=list(engines or []),
            **details
        )


# =============================================================================
# Backend errors (logged and skipped by the orchestrator)
# =============================================================================

class ExternalServiceError(AppException):
    """A search backend or a fetched page failed."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[ErrorCode] = None,
        **details
    ):
        self.service = service
        super().__init__(
            code=code or BACKEND_CODES.get(service.lower(), ErrorCode.BACKEND_ERROR),
            message=f"{service} error: {message}",
            status_code=502,
            details={"service": service, **details}
        )


class FetchError(ExternalServiceError):
    """
    Every fetch attempt for a URL failed.

    `response_status` is the last HTTP status seen (None for transport
    errors such as timeouts or refused connections). A 429 is reported
    with ErrorCode.RATE_LIMITED so callers can back the backend off;
    anything else carries the backend's own code once an adapter has
    claimed the error with for_backend().
    """

    def __init__(
        self,
        url: str,
        message: str,
        attempts: int = 0,
        status_code: Optional[int] = None,
        service: str = "fetcher",
        **details
    ):
        self.url = url
        self.reason = message
        self.attempts = attempts
        self.response_status = status_code
        if status_code == 429:
            code = ErrorCode.RATE_LIMITED
        else:
            code = BACKEND_CODES.get(service.lower(), ErrorCode.FETCH_FAILED)
        super().__init__(
            service=service,
            message=message,
            code=code,
            url=url,
            attempts=attempts,
            response_status=status_code,
            **details
        )

    @property
    def is_rate_limited(self) -> bool:
        return self.response_status == 429

    def for_backend(self, service: str) -> "FetchError":
        """Same failure, attributed to the named search backend"""
        return FetchError(
            self.url,
            self.reason,
            attempts=self.attempts,
            status_code=self.response_status,
            service=service,
        )


class ParseError(ExternalServiceError):
    """
    A backend answered, but not in the shape its adapter expects.

    Known backends report their own 5xxx code; anything else gets
    ErrorCode.PARSE_FAILED.
    """

    def __init__(self, service: str, message: str, **details):
        code = BACKEND_CODES.get(service.lower(), ErrorCode.PARSE_FAILED)
        super().__init__(service=service, message=message, code=code, kind="parse", **details)
