"""
bodycipher: Health Check Route
================================

What:  Liveness endpoint for Docker health checks and load balancers.
How:   Reports version, uptime and how many endpoints the interceptor guards.
       This route is never encrypted, so load balancers need no key.
"""

import logging
import time

from fastapi import APIRouter, Request

from bodycipher import __version__
from bodycipher.schemas.message import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    registry = getattr(request.app.state, "encrypted_endpoints", None)
    return HealthResponse(
        status="healthy",
        version=__version__,
        encrypted_endpoints=len(registry) if registry is not None else 0,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
