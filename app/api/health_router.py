"""
Health endpoints for load balancers and monitoring.

``/health/live`` only proves the process answers. ``/health/ready``
requires the database and a writable upload directory. ``/health``
reports every dependency; Redis and Celery are optional there because
caching and rate limiting fail open and only maintenance jobs need
workers.
"""

import shutil
import tempfile
import time
from pathlib import Path
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.core.cache import cache_manager
from app.core.database import db_manager
from app.core.logging_config import get_logger
from app.features.files.storage import format_size

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

LOW_DISK_BYTES = 1024 * 1024 * 1024


async def check_database() -> dict[str, Any]:
    start = time.perf_counter()
    async for db in db_manager.get_session():
        await db.execute(text("SELECT 1"))
    return {
        "status": "healthy",
        "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
        "dialect": db_manager.engine.dialect.name,
    }


def check_upload_dir() -> dict[str, Any]:
    """Upload directory exists, accepts writes, and how much room is left."""
    root = Path(settings.upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=root, prefix=".probe-"):
        pass

    free = shutil.disk_usage(root).free
    return {
        "status": "healthy" if free >= LOW_DISK_BYTES else "degraded",
        "free_bytes": free,
        "free": format_size(free),
    }


async def check_redis() -> dict[str, Any]:
    start = time.perf_counter()
    await cache_manager.client.ping()
    info = await cache_manager.client.info()
    return {
        "status": "healthy",
        "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
        "version": info.get("redis_version", "unknown"),
    }


def check_workers() -> dict[str, Any]:
    from app.core.celery_app import celery_app

    stats = celery_app.control.inspect(timeout=1.0).stats()
    if not stats:
        return {"status": "degraded", "worker_count": 0, "message": "No workers available"}
    return {"status": "healthy", "worker_count": len(stats)}


@router.get("/live")
async def liveness() -> dict:
    return {"status": "alive"}


@router.get("/ready")
async def readiness() -> JSONResponse:
    """
    Readiness probe.

    Returns:
        200: Database reachable and uploads can be written
        503: Otherwise
    """
    checks: dict[str, Any] = {}

    try:
        checks["database"] = {"status": (await check_database())["status"]}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}

    try:
        checks["storage"] = {"status": check_upload_dir()["status"]}
    except OSError as e:
        checks["storage"] = {"status": "unhealthy", "error": str(e)}

    is_ready = all(check["status"] != "unhealthy" for check in checks.values())
    if not is_ready:
        logger.warning("readiness_check_failed", checks=checks)

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if is_ready else "not_ready", "checks": checks},
    )


@router.get("")
async def health() -> dict:
    """Status of every dependency; any failure marks the service degraded."""
    checks: dict[str, Any] = {}
    overall_status = "healthy"

    try:
        checks["database"] = await check_database()
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        overall_status = "degraded"

    try:
        checks["storage"] = check_upload_dir()
    except OSError as e:
        checks["storage"] = {"status": "unhealthy", "error": str(e)}
    if checks["storage"]["status"] != "healthy":
        overall_status = "degraded"

    try:
        checks["redis"] = await check_redis()
    except Exception as e:
        checks["redis"] = {"status": "unavailable", "error": str(e)}

    try:
        checks["celery"] = check_workers()
    except Exception as e:
        checks["celery"] = {"status": "unknown", "error": str(e)}

    return {
        "status": overall_status,
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks,
    }
