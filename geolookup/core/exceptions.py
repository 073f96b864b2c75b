"""
Custom exceptions for the geolookup caching layer.

Upstream failures (RateLimited, NotFound, Transient, InvalidInput) are
surfaced to callers unchanged; CacheKeyError means a cache key could not be
derived from the input and is treated as a programming error.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Input errors
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    EMPTY_QUERY = "EMPTY_QUERY"

    # Upstream errors
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    UPSTREAM_TRANSIENT = "UPSTREAM_TRANSIENT"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    UPSTREAM_MALFORMED = "UPSTREAM_MALFORMED"

    # Internal errors
    CACHE_KEY_INVALID = "CACHE_KEY_INVALID"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class GeoLookupException(Exception):
    """Base exception for the geolookup layer."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(GeoLookupException):
    """Raised for malformed coordinates or empty queries, before any cache or network activity."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.INVALID_INPUT
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=400
        )


class UpstreamError(GeoLookupException):
    """Base class for failures reported by the mapping provider."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 502
    ):
        details = dict(details or {})
        if operation:
            details.setdefault("operation", operation)
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=status_code
        )
        self.operation = operation


class RateLimitedError(UpstreamError):
    """Raised when the provider rejects a call for quota reasons."""

    retryable = True

    def __init__(self, operation: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Mapping provider rate limit exceeded",
            error_code=ErrorCode.RATE_LIMITED,
            operation=operation,
            details=details,
            status_code=429
        )


class NotFoundError(UpstreamError):
    """Raised when a valid query has no data. Distinct from failure."""

    def __init__(self, message: str = "No results found", operation: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.NOT_FOUND,
            operation=operation,
            details=details,
            status_code=404
        )


class TransientError(UpstreamError):
    """Raised for network failures, 5xx responses, timeouts and malformed payloads."""

    retryable = True

    def __init__(
        self,
        message: str = "Mapping provider temporarily unavailable",
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.UPSTREAM_TRANSIENT
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            operation=operation,
            details=details,
            status_code=503
        )


class UpstreamTimeoutError(TransientError):
    """Raised when an upstream call exceeds its caller-supplied timeout."""

    def __init__(self, timeout_seconds: float, operation: Optional[str] = None):
        super().__init__(
            message=f"Upstream call timed out after {timeout_seconds:g} seconds",
            operation=operation,
            details={"timeout_seconds": timeout_seconds},
            error_code=ErrorCode.UPSTREAM_TIMEOUT
        )


class CacheKeyError(GeoLookupException, KeyError):
    """Raised when a cache key cannot be derived from the given input."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CACHE_KEY_INVALID,
            details=details,
            status_code=500
        )
