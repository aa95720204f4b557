"""Database Engine — builds the bounded async connection pool and exposes the gateway.

Invariants:
    - The pool never grows past database_pool_size (no overflow connections)
    - Connection pool uses pool_pre_ping for stale connection detection
    - The gateway lives on app.state; whoever created it disposes it

Design Decisions:
    - No module-level singleton: the lifespan builds the engine, tests inject
      their own gateway through create_app()
    - SQLite URLs skip the queue-pool sizing arguments (single-file test databases)
"""

import logging

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from sqlrest.config import Settings
from sqlrest.infrastructure.table_gateway import TableGateway

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine (and its pool) described by settings."""
    url = settings.sqlalchemy_url
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url)
    return create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=0,
        pool_timeout=settings.database_pool_timeout,
        pool_pre_ping=True,
        pool_recycle=settings.database_pool_recycle,
    )


def build_gateway(settings: Settings) -> TableGateway:
    engine = build_engine(settings)
    logger.info(
        f"Connection pool created for {engine.url.render_as_string(hide_password=True)}",
    )
    return TableGateway(engine, database_name=engine.url.database)


def get_gateway(request: Request) -> TableGateway:
    """FastAPI dependency for the table gateway."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise RuntimeError("Database not initialized")
    return gateway
