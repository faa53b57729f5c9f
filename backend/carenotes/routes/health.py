"""
CareNotes Backend - Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancers.
How:   Runs SELECT 1 against the database and reports the postcode
       geocoder's state without calling it.
Who:   Called by Docker health checks, load balancers and monitoring.

Status levels:
    - healthy:   Database reachable, geocoder disabled or available (HTTP 200)
    - degraded:  Geocoder circuit open; matching uses the default distance (HTTP 200)
    - unhealthy: Database unreachable (HTTP 200 with status flag)
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from carenotes import __version__
from carenotes.database import engine
from carenotes.schemas.common import HealthResponse
from carenotes.services.geocoding_service import geocoding_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health status of the backend and its dependencies. "
        "Does not require authentication."
    ),
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    geocoder_status = geocoding_service.status
    if geocoder_status == "circuit_open" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        geocoder=geocoder_status,
        geocoder_circuit=geocoding_service.health_details() if geocoding_service.enabled else None,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
