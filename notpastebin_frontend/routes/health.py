"""
NotPasteBin Frontend — Health Check Route
===========================================

What:  GET /health for container health checks and load balancers.
How:   Asks the backend client whether its channel is usable; never makes an RPC.

Status levels:
    healthy:   backend channel usable (HTTP 200)
    degraded:  backend unreachable or circuit open (HTTP 200; pages will 500)

Why 200 when degraded:
    Restarting the frontend does not fix the backend. The status field is
    for alerting, not for pulling the instance out of rotation.
"""

import logging
import time

from fastapi import APIRouter, Request

from notpastebin_frontend import __version__
from notpastebin_frontend.schemas.note import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    backend_status = "available"
    overall = "healthy"

    try:
        if not await request.app.state.backend.health_check():
            backend_status = "unavailable"
            overall = "degraded"
    except Exception as e:
        backend_status = "unavailable"
        overall = "degraded"
        logger.warning("Health check: backend check failed: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        backend=backend_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
