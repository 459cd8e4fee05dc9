"""
ScentMatch Backend — Health Check Route
=========================================

What:  GET /health liveness probe.
Why:   Load balancers and Docker need a cheap, unauthenticated signal.
How:   Always 200 while the process serves requests; reports database
       reachability (SELECT 1) so monitoring can alert on "degraded".
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from scentmatch import __version__
from scentmatch.database import Database, get_database
from scentmatch.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(database: Database = Depends(get_database)) -> HealthResponse:
    db_ok = await database.ping()
    if not db_ok:
        logger.warning("Health check: database unreachable")

    return HealthResponse(
        status="ok" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        database="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
