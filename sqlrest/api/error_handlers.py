"""Error Handlers — global exception handlers that answer with result envelopes.

Invariants:
    - GatewayError → envelope with the error object and the error's status
    - Exception (catch-all) → 500 envelope, never leaks internal details
    - Every handler logs before responding

Design Decisions:
    - Two-layer handler: gateway errors (typed) and catch-all
    - Routes raise, handlers format: no try/except envelope building in routes
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sqlrest.core.envelope import format_envelope
from sqlrest.core.errors import GatewayError, InternalError

logger = logging.getLogger(__name__)


def error_response(exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=format_envelope(
            [], error=exc.to_error_object(), status=exc.http_status,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_gateway_error_handler(app)
    _register_generic_error_handler(app)


def _register_gateway_error_handler(app: FastAPI) -> None:

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """Handle all typed gateway errors."""
        level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
        logger.log(
            level, f"{exc.code}: {exc.message}",
            extra={
                "error_code": exc.code,
                "method": request.method,
                "path": request.url.path,
                "status": exc.http_status,
            },
        )
        return error_response(exc)


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return error_response(InternalError())
