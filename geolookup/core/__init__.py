"""
Core building blocks for the geolookup layer.
Provides the TTL cache, cache key derivation, request coalescing and the error taxonomy.
"""

from .cache import TTLCache, CacheCategory, CategoryPolicy, CacheEntry
from .keys import KeyCodec, GeoCell, GEO_CELL_SIZE_DEG
from .coalescer import RequestCoalescer
from .exceptions import (
    ErrorCode,
    GeoLookupException,
    InvalidInputError,
    UpstreamError,
    RateLimitedError,
    NotFoundError,
    TransientError,
    UpstreamTimeoutError,
    CacheKeyError,
)

__all__ = [
    "TTLCache",
    "CacheCategory",
    "CategoryPolicy",
    "CacheEntry",
    "KeyCodec",
    "GeoCell",
    "GEO_CELL_SIZE_DEG",
    "RequestCoalescer",
    "ErrorCode",
    "GeoLookupException",
    "InvalidInputError",
    "UpstreamError",
    "RateLimitedError",
    "NotFoundError",
    "TransientError",
    "UpstreamTimeoutError",
    "CacheKeyError",
]
