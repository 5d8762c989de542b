"""
PenguinWatch Backend - Health Check Route
===========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs SELECT 1 against the application's database handle.

Status levels:
    - healthy:   Database reachable (HTTP 200)
    - unhealthy: Database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from penguinwatch import __version__
from penguinwatch.schemas.observation import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request):
    db_ok = await request.app.state.db.ping()
    if not db_ok:
        logger.warning("Health check: database unreachable")

    body = HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        version=__version__,
        database="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(status_code=200 if db_ok else 503, content=body.model_dump())
