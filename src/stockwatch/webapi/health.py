"""Health check endpoint."""

import time

from fastapi import APIRouter

from .. import __version__
from ..config.logging import get_logger
from ..ormdb.database import check_database_health
from .models.responses import HealthResponse, HealthStatus

logger = get_logger(__name__)
router = APIRouter()

# Track application start time for uptime calculation
_app_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Basic Health Check")
def basic_health_check():
    """Report database connectivity and uptime. Needs no authentication."""
    db_health = check_database_health()
    status = "healthy" if db_health["status"] == "healthy" else "unhealthy"

    if status != "healthy":
        logger.warning("Health check degraded", database=db_health)

    return HealthResponse(
        health=HealthStatus(
            status=status,
            services={"database": db_health},
            uptime_seconds=time.time() - _app_start_time,
            version=__version__,
        )
    )
