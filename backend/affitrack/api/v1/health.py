"""
Health check endpoints for monitoring and load balancers.
Checks PostgreSQL, Redis and the GeoIP databases.
"""

import os

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from affitrack.core.config import settings
from affitrack.db.postgres import async_session_maker
from affitrack.db.redis import redis_client

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Health check for all services the tracker depends on.

    Returns:
        - status: "healthy" if all critical checks pass, "unhealthy" otherwise
        - checks: Dict of individual service statuses
        - version: App version
        - environment: Current environment

    HTTP Status Codes:
        - 200: All critical services healthy
        - 503: PostgreSQL unavailable
    """
    health_status = {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {}
    }

    # PostgreSQL is critical: events cannot be persisted without it
    try:
        async with async_session_maker() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        health_status["checks"]["postgres"] = {
            "status": "healthy",
            "host": settings.postgres_host,
            "port": settings.postgres_port,
            "database": settings.postgres_db
        }
    except Exception as e:
        health_status["checks"]["postgres"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        health_status["status"] = "unhealthy"

    # Redis only backs the report cache
    if await redis_client.ping():
        health_status["checks"]["redis"] = {
            "status": "healthy",
            "host": settings.redis_host,
            "port": settings.redis_port
        }
    else:
        health_status["checks"]["redis"] = {
            "status": "degraded",
            "message": "Report cache disabled"
        }

    # GeoIP databases are optional; missing files only degrade geolocation
    health_status["checks"]["geoip"] = {
        name: "present" if os.path.exists(path) else "missing"
        for name, path in settings.geoip_paths.items()
    }

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status


@router.get("/ready")
async def readiness_check():
    """
    Kubernetes-style readiness probe.
    Returns 200 if the service is ready to accept traffic.
    """
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "error": str(e)}
        )


@router.get("/live")
async def liveness_check():
    """
    Kubernetes-style liveness probe.
    """
    return {"status": "alive", "version": settings.app_version}
