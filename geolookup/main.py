"""
FastAPI application setup.

The app owns exactly one ServiceContainer, created in the lifespan and
stored on ``app.state.container``.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from geolookup.api import maps_router
from geolookup.config.settings import Settings, get_settings
from geolookup.core.container import ServiceContainer
from geolookup.core.error_handlers import setup_error_handlers
from geolookup.core.logging import configure_logging
from geolookup.services.upstream_gateway import UpstreamGateway

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None,
               gateway: Optional[UpstreamGateway] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to build the services from; defaults to the environment
        gateway: Upstream gateway override, used by tests

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level.value, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        container = ServiceContainer(settings, gateway=gateway)
        await container.initialize()
        app.state.container = container
        logger.info("Application startup complete")
        try:
            yield
        finally:
            logger.info("Shutting down application")
            try:
                await container.shutdown()
                logger.info("Application shutdown complete")
            except Exception as e:
                logger.error(f"Application shutdown failed: {e}", exc_info=True)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    setup_error_handlers(app)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log requests and responses with timing information."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        processing_time = (time.time() - start_time) * 1000
        logger.info(
            f"Request {request_id} completed: {request.method} {request.url.path} "
            f"{response.status_code} ({processing_time:.2f}ms)",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "processing_time_ms": processing_time,
            },
        )
        return response

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", "data": request.app.state.container.health(), "error": None}

    app.include_router(maps_router)
    return app
