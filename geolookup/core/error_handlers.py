"""
Error handlers for the HTTP surface.

Every failure leaves the API in the same envelope as a success:
{"status": "error", "data": null, "error": {"code", "message", "details"}}.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from geolookup.core.exceptions import CacheKeyError, ErrorCode, GeoLookupException

logger = logging.getLogger(__name__)


def error_envelope(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "status": "error",
        "data": None,
        "error": {"code": code, "message": message, "details": details or {}},
    }


async def handle_geolookup_exception(request: Request, exc: GeoLookupException) -> JSONResponse:
    log_extra = {
        "path": request.url.path,
        "error_code": exc.error_code.value,
        "status_code": exc.status_code,
    }
    if isinstance(exc, CacheKeyError):
        logger.error(f"Cache key error on {request.url.path}: {exc.message}", extra=log_extra)
    elif exc.status_code >= 500:
        logger.warning(f"Upstream failure on {request.url.path}: {exc.message}", extra=log_extra)
    else:
        logger.info(f"Request rejected on {request.url.path}: {exc.message}", extra=log_extra)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.error_code.value, exc.message, exc.details),
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_envelope(ErrorCode.INVALID_INPUT.value, "Request validation failed", {"errors": errors}),
    )


def setup_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GeoLookupException, handle_geolookup_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
