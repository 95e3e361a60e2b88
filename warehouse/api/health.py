from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from warehouse.database import get_db
from warehouse.utils.cache import CacheService, get_cache_service

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"success": True, "data": {"status": "healthy"}}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if all services (DB, Redis) are ready."
)
def readiness_check(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    Readiness check for all dependencies.

    Returns status of:
    - Database connection
    - Redis connection
    """
    checks = {
        "database": False,
        "redis": False
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)

    # Check Redis
    try:
        cache.client.ping()
        checks["redis"] = True
    except Exception as e:
        checks["redis_error"] = str(e)

    # Determine overall status
    all_healthy = all([checks["database"], checks["redis"]])

    return {
        "success": True,
        "data": {
            "status": "ready" if all_healthy else "not_ready",
            "checks": checks
        }
    }
