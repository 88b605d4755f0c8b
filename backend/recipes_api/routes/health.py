"""
Recipes API - Health Check Route
==================================

What:  Health check endpoint for monitoring and load balancer checks.
How:   Checks the database through the request session and pings the cache;
       reports whether the app's image host credentials are configured (no
       call is made to Cloudinary).

Status levels:
    - healthy:   everything operational (HTTP 200)
    - degraded:  cache unavailable or image host not configured (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recipes_api import __version__
from recipes_api.config import Settings
from recipes_api.database import get_db_session
from recipes_api.dependencies import get_services
from recipes_api.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> HealthResponse:
    config: Settings = request.app.state.settings
    db_status = "connected"
    cache_status = "available"
    image_store_status = "configured" if config.cloudinary_configured else "missing"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        await db.rollback()
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Cache ───────────────────────────────────────────────────────
    if not await get_services(request).cache.health_check():
        cache_status = "unavailable"

    if overall != "unhealthy" and (cache_status != "available" or image_store_status != "configured"):
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        cache=cache_status,
        image_store=image_store_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
