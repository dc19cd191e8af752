"""
Web Search Server Core Components
Shared exception hierarchy and error codes
"""

from .exceptions import (
    AppException,
    ErrorCode,
    ExternalServiceError,
    FetchError,
    NoResultsError,
    ParseError,
    SearchError,
    SearchTimeoutError,
    ValidationError,
)

__all__ = [
    "AppException",
    "ErrorCode",
    "ExternalServiceError",
    "FetchError",
    "NoResultsError",
    "ParseError",
    "SearchError",
    "SearchTimeoutError",
    "ValidationError",
]
