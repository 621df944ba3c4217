"""HTTP mapping for engine errors.

Protean's handlers cover its base exceptions; the handlers added here take
precedence for the engine's subclasses because Starlette resolves handlers
along the exception's MRO.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from settlement.errors import DOMAIN_ERRORS

logger = structlog.get_logger(__name__)


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.info(
        "Request rejected",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "detail": exc.messages},
    )


def register_settlement_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for error_class in DOMAIN_ERRORS:
        app.add_exception_handler(error_class, domain_error_handler)
