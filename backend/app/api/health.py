"""Health check endpoints."""
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from sqlalchemy import text
import redis

from app.config import get_settings
from app.database import get_db, get_redis
from app.middleware.logging import get_logger

router = APIRouter()
settings = get_settings()
logger = get_logger()


def _probe(name: str, check) -> dict:
    """Run one dependency check, timing it. Failures are reported, not raised."""
    start = time.time()
    try:
        check()
        status = "healthy"
    except Exception as e:
        logger.warning("health_check_failed", dependency=name, error=str(e), error_type=type(e).__name__)
        status = f"unhealthy: {str(e)}"
    return {"status": status, "latency_ms": int((time.time() - start) * 1000)}


@router.get("/health")
@router.head("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy", "service": settings.app_name}


@router.get("/health/detailed")
def detailed_health_check(
    response: Response,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis)
):
    """
    Readiness probe covering PostgreSQL and Redis.

    Redis backs the payout rate limiter, so payouts cannot be requested while
    it is down; the endpoint answers 503 whenever any dependency fails.
    """
    checks = {
        "database": _probe("database", lambda: db.execute(text("SELECT 1"))),
        "redis": _probe("redis", redis_client.ping),
    }

    healthy = all(c["status"] == "healthy" for c in checks.values())
    if not healthy:
        response.status_code = 503

    return {
        "status": "healthy" if healthy else "degraded",
        "checks": {"api": "healthy", **{name: c["status"] for name, c in checks.items()}},
        "latency_ms": {name: c["latency_ms"] for name, c in checks.items()}
    }
