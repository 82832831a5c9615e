"""Maps Ordering errors onto HTTP responses.

Protean's own handlers cover generic validation and lookup failures; the
handlers registered here take precedence for the domain's typed errors and
answer with their status code and a ``{"error", "messages"}`` body.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import NotFound, OrderingError

logger = structlog.get_logger(__name__)


def _error_response(exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "messages": exc.messages},
    )


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Upstream failure", path=request.url.path, error=exc.kind, detail=str(exc))
    else:
        logger.info("Request rejected", path=request.url.path, error=exc.kind, detail=str(exc))
    return _error_response(exc)


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return _error_response(exc)


def register_ordering_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(NotFound, not_found_handler)
