from fastapi import APIRouter, Depends
from sqlalchemy import text
import redis

from inventory_sync.broadcast.broadcaster import Broadcaster, get_broadcaster
from inventory_sync.database import engine

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic health check endpoint."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if all services (DB, Redis relay when enabled) are ready."
)
def readiness_check(broadcaster: Broadcaster = Depends(get_broadcaster)):
    """
    Readiness check for all dependencies.

    Returns status of:
    - Database connection
    - Redis connection (only when broadcasts are relayed through Redis)
    """
    checks = {"database": False}

    # Check database
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)

    # Check Redis
    if broadcaster.relay is not None:
        checks["redis"] = False
        try:
            broadcaster.relay.ping()
            checks["redis"] = True
        except redis.RedisError as e:
            checks["redis_error"] = str(e)

    # Determine overall status
    all_healthy = all(value for key, value in checks.items() if not key.endswith("_error"))

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks
    }


@router.get(
    "/broadcast",
    summary="Broadcast statistics",
    description="Number of push clients subscribed to each topic in this process."
)
def broadcast_stats(broadcaster: Broadcaster = Depends(get_broadcaster)):
    """Get push channel statistics."""
    return {
        "backend": "redis" if broadcaster.relay is not None else "memory",
        "subscribers": broadcaster.hub.subscriber_counts()
    }
