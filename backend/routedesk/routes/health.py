"""
RouteDesk Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and container probes.
How:   Runs SELECT 1 against the configured database and reports the result.
Who:   Called by Docker health checks and uptime monitors.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: DATABASE_URL missing or the database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from routedesk import __version__
from routedesk import database
from routedesk.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    """Probe the database with SELECT 1 and report uptime."""
    db_status = "connected"

    if database.engine is None:
        db_status = "not_configured"
    else:
        try:
            async with database.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            db_status = "disconnected"
            logger.warning("Health check: database unreachable: %s", str(e))

    overall = "healthy" if db_status == "connected" else "unhealthy"
    if overall != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
