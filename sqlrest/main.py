"""SQLREST API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly: health first, tables (with the catch-all) last
    - Global error handlers map GatewayError → result envelopes
    - CORS configured from settings (all origins by default)
    - The connection pool is created by the lifespan unless a gateway is injected,
      and disposed only by the lifespan that created it

Design Decisions:
    - create_app() factory: tests inject a TableGateway over a throwaway
      database, production builds one from settings
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - OpenAPI/docs routes disabled: every first path segment is a table name
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sqlrest.api.error_handlers import register_error_handlers
from sqlrest.api.routes import health, tables
from sqlrest.config import Settings, get_settings
from sqlrest.infrastructure.database import build_gateway
from sqlrest.infrastructure.observability import setup_logging
from sqlrest.infrastructure.table_gateway import TableGateway

logger = logging.getLogger(__name__)

API_VERSION = "0.3.0"


async def log_requests(request: Request, call_next):
    """Trace every request with its outcome."""
    response = await call_next(request)
    logger.debug(
        f"{request.method} {request.url.path}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
        },
    )
    return response


def create_app(
    settings: Settings | None = None, gateway: TableGateway | None = None,
) -> FastAPI:
    """Build the application; an injected gateway is used as-is and never closed here."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle."""
        setup_logging(settings.log_level, settings.log_format)
        owns_gateway = app.state.gateway is None
        if owns_gateway:
            app.state.gateway = build_gateway(settings)
        logger.info("SQLREST API started")
        yield
        logger.info("SQLREST API shutting down")
        if owns_gateway:
            await app.state.gateway.close()
            app.state.gateway = None

    app = FastAPI(
        title="SQLREST API", version=API_VERSION, lifespan=lifespan,
        docs_url=None, redoc_url=None, openapi_url=None,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(tables.router)
    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "sqlrest.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
