# API endpoints and routers

from .maps_endpoints import router as maps_router

__all__ = [
    "maps_router",
]
