"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /_health always returns 200 if the process is up (liveness)
    - GET /_health/ready returns 503 if the database is unreachable (readiness)
    - Both answer with result envelopes like every other route

Design Decisions:
    - Underscore prefix: the table routes own every other first path segment
"""

import logging

from fastapi import APIRouter, Depends

from sqlrest.api.routes.tables import envelope_response
from sqlrest.core.envelope import format_envelope
from sqlrest.infrastructure.database import get_gateway
from sqlrest.infrastructure.table_gateway import TableGateway

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/_health", tags=["health"])

SERVICE_NAME = "sqlrest"


@router.get("")
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return envelope_response(
        format_envelope({"service": SERVICE_NAME, "state": "healthy"}),
    )


@router.get("/ready")
async def readiness_check(gateway: TableGateway = Depends(get_gateway)):
    """Readiness probe — includes database connectivity."""
    if not await gateway.health_check():
        logger.warning("Readiness check failed: database unavailable")
        return envelope_response(format_envelope(
            {"state": "not_ready", "database": "unavailable"}, status=503,
        ))
    return envelope_response(
        format_envelope({"state": "ready", "database": "healthy"}),
    )
