"""
Music Journal Backend — Health Check Route
============================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Pings the database through the store's handle.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from musicjournal import __version__
from musicjournal.dependencies import get_store
from musicjournal.schemas.journal import HealthResponse
from musicjournal.services.journal_store import JournalStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    store: JournalStore = Depends(get_store),
) -> HealthResponse:
    db_ok = await store.db.ping()
    if not db_ok:
        response.status_code = 503

    return HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        version=__version__,
        database="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
