"""Liveness and readiness endpoints for the bulk job service."""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from bulk_jobs.core.config import get_settings
from bulk_jobs.db.models.bulk_job import BulkJob
from bulk_jobs.db.session import engine
from bulk_jobs.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "marketplace-bulk-jobs"


def _check_database() -> str:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1")).fetchone()
        conn.execute(select(BulkJob.id).limit(1)).fetchall()
    return "Database connection successful"


def _ping_redis(url: str) -> Callable[[], str]:
    def probe() -> str:
        client = create_redis_client(url, decode_responses=True, socket_connect_timeout=2)
        try:
            client.ping()
        finally:
            client.close()
        return "Redis connection successful"

    return probe


def _run_check(name: str, probe: Callable[[], str], expected: tuple) -> dict[str, str]:
    try:
        return {"status": "healthy", "message": probe()}
    except expected as e:
        logger.error(f"{name} health check failed: {e}", exc_info=True)
        return {"status": "unhealthy", "message": f"{name} connection failed: {e}"}
    except Exception as e:
        logger.error(f"Unexpected error in {name} health check: {e}", exc_info=True)
        return {"status": "unhealthy", "message": f"Unexpected error: {e}"}


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates the API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/ready", summary="Readiness probe")
async def ready() -> dict[str, Any]:
    """Check the job database, Redis progress cache and the Celery broker.

    Database and Redis failures return 503. The broker is reported but does
    not fail readiness because workers may run elsewhere.
    """
    settings = get_settings()
    checks: dict[str, Any] = {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {
            "database": _run_check("Database", _check_database, (SQLAlchemyError,)),
            "redis": _run_check("Redis", _ping_redis(settings.redis_url), (RedisError,)),
            "celery_broker": _run_check(
                "Celery broker",
                _ping_redis(settings.celery_broker_url or settings.redis_url),
                (RedisError,),
            ),
        },
    }

    required = ("database", "redis")
    if any(checks["checks"][name]["status"] != "healthy" for name in required):
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    return checks
