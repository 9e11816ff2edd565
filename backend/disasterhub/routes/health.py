"""
DisasterHub Backend — Health Check Route
==========================================

What:  GET /api/health for container health checks and load balancers.
How:   Runs `SELECT 1` against the database and reports the realtime hub's
       state alongside uptime.

Status levels:
    healthy:   database reachable (HTTP 200)
    unhealthy: database unreachable (HTTP 503, stop routing traffic)

The realtime channel is informational only; the API works without it.
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from disasterhub import __version__
from disasterhub.database import engine
from disasterhub.schemas.common import HealthResponse
from disasterhub.services.realtime import realtime_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        realtime="enabled" if realtime_hub.enabled else "disabled",
        realtime_subscribers=realtime_hub.subscriber_count,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
