"""
Batched distance matrix lookups.

A batch is keyed by its two ordered waypoint lists and cached whole. Row
and column order carry meaning for the caller, so lists are never sorted,
and a cached batch never answers part of a different batch: [A, B] x [X]
and [A] x [X] are unrelated entries.
"""

import logging
from typing import List, Optional, Sequence

from geolookup.core.cache import CacheCategory, TTLCache
from geolookup.core.coalescer import RequestCoalescer
from geolookup.core.exceptions import ErrorCode, TransientError
from geolookup.core.keys import KeyCodec
from geolookup.core.metrics import LatencyRecorder
from geolookup.core.validation import validate_waypoints
from geolookup.models.internal_models import DistanceMatrix, Waypoint
from geolookup.services.upstream_gateway import UpstreamGateway, call_upstream, waypoint_param

logger = logging.getLogger(__name__)


class DistanceMatrixBatcher:
    def __init__(
        self,
        gateway: UpstreamGateway,
        cache: TTLCache,
        codec: KeyCodec,
        coalescer: RequestCoalescer,
        latency: Optional[LatencyRecorder] = None,
        default_timeout: Optional[float] = None,
    ):
        self.gateway = gateway
        self.cache = cache
        self.codec = codec
        self.coalescer = coalescer
        self.latency = latency or LatencyRecorder()
        self.default_timeout = default_timeout

    async def get_or_compute(
        self,
        origins: Sequence[Waypoint],
        destinations: Sequence[Waypoint],
        timeout: Optional[float] = None,
    ) -> DistanceMatrix:
        """
        Return the full matrix for this exact batch.

        On a miss the gateway is called once for the entire batch and the
        result is cached atomically; concurrent identical batches share that
        one call.

        Raises:
            InvalidInputError: For empty lists or malformed waypoints
            UpstreamError: Propagated unchanged from the gateway; nothing is cached
        """
        origins = validate_waypoints(origins, "origins")
        destinations = validate_waypoints(destinations, "destinations")
        key = self.codec.batch_key(CacheCategory.DISTANCE_MATRIX, origins, destinations)

        cached = self.cache.get(key, CacheCategory.DISTANCE_MATRIX)
        if cached is not None:
            return cached

        timeout = self.default_timeout if timeout is None else timeout
        return await self.coalescer.run(
            key,
            lambda: self._fetch(key, origins, destinations, timeout),
            recheck=lambda: self._peek(key),
        )

    def _peek(self, key: str) -> Optional[DistanceMatrix]:
        if self.cache.contains(key, CacheCategory.DISTANCE_MATRIX):
            return self.cache.get(key, CacheCategory.DISTANCE_MATRIX)
        return None

    async def _fetch(
        self,
        key: str,
        origins: List[Waypoint],
        destinations: List[Waypoint],
        timeout: Optional[float],
    ) -> DistanceMatrix:
        with self.latency.record("matrix"):
            rows = await call_upstream(self.gateway.matrix(origins, destinations), timeout, "matrix")

        if len(rows) != len(origins) or any(len(row) != len(destinations) for row in rows):
            raise TransientError(
                "Distance matrix shape does not match the request",
                operation="matrix",
                details={
                    "expected": [len(origins), len(destinations)],
                    "received": [len(rows), len(rows[0]) if rows else 0],
                },
                error_code=ErrorCode.UPSTREAM_MALFORMED,
            )

        matrix = DistanceMatrix(
            origins=tuple(waypoint_param(o) for o in origins),
            destinations=tuple(waypoint_param(d) for d in destinations),
            rows=tuple(tuple(row) for row in rows),
        )
        self.cache.set(key, matrix, CacheCategory.DISTANCE_MATRIX)
        logger.debug(f"Cached {len(origins)}x{len(destinations)} distance matrix")
        return matrix
