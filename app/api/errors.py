"""
Translate domain errors into JSON responses.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
Request-body validation stays with FastAPI's own 422 handler; anything that is
not a FleetError is a server error.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.errors import FleetError

logger = logging.getLogger(__name__)


async def fleet_error_handler(request: Request, exc: FleetError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(FleetError, fleet_error_handler)
