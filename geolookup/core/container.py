"""
Composition root for the geolookup layer.

Builds the cache, key codec, coalescer, gateway and lookup facade from one
Settings instance and owns their lifecycle. There are no module-level
service instances; whoever constructs a container owns it.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from geolookup.config.settings import Settings
from geolookup.core.cache import TTLCache
from geolookup.core.coalescer import RequestCoalescer
from geolookup.core.keys import KeyCodec
from geolookup.core.metrics import LatencyRecorder
from geolookup.services.category_mapping import RegionPhraseResolver
from geolookup.services.maps_service import MapsLookupService
from geolookup.services.upstream_gateway import HttpUpstreamGateway, UpstreamGateway

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Container for the lookup services with lifecycle management.

    Lifecycle: construct -> initialize() -> ... -> shutdown().
    """

    def __init__(
        self,
        settings: Settings,
        gateway: Optional[UpstreamGateway] = None,
        clock: Callable[[], float] = time.monotonic,
        resolver: Optional[RegionPhraseResolver] = None,
    ):
        self.settings = settings
        self.cache = TTLCache.from_settings(settings.cache, clock=clock)
        self.codec = KeyCodec()
        self.coalescer = RequestCoalescer(settings.coalescer.debounce_window_seconds)
        self.gateway = gateway or HttpUpstreamGateway(settings.upstream)
        self.latency = LatencyRecorder()
        self.maps = MapsLookupService(
            gateway=self.gateway,
            cache=self.cache,
            codec=self.codec,
            coalescer=self.coalescer,
            settings=settings,
            latency=self.latency,
            resolver=resolver,
        )
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        async with self._lock:
            if self._initialized:
                return
            logger.info("Initializing service container", extra=self.settings.describe())
            self.maps.start()
            self._initialized = True
            logger.info("Service container initialized successfully")

    async def shutdown(self) -> None:
        """Cancel outstanding work, stop the sweep, drop cached data and close the gateway."""
        async with self._lock:
            logger.info("Shutting down service container")
            try:
                await self.maps.shutdown()
            finally:
                await self.gateway.aclose()
                self._initialized = False
            logger.info("Service container shutdown complete")

    def health(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "cache_size": self.cache.size(),
            "in_flight": self.coalescer.in_flight_count(),
            "pending_debounces": self.coalescer.pending_debounce_count(),
        }
