"""
Prometheus scrape endpoint.

Counters are updated where events happen; per-organization storage is a
gauge recomputed from the files table when scraped.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import get_logger
from app.core.metrics import organization_storage_bytes
from app.models import File, FileStatus

logger = get_logger(__name__)

router = APIRouter(tags=["Metrics"])


async def refresh_storage_gauges(db: AsyncSession) -> int:
    """Set the storage gauge for every organization holding active files."""
    result = await db.execute(
        select(File.organization_id, func.coalesce(func.sum(File.file_size), 0))
        .where(File.status == FileStatus.ACTIVE.value)
        .group_by(File.organization_id)
    )
    rows = result.all()
    for organization_id, used in rows:
        organization_storage_bytes.labels(organization_id=organization_id).set(used)
    return len(rows)


@router.get("/metrics")
async def metrics(db: Annotated[AsyncSession, Depends(get_db)]):
    """Metrics in Prometheus text format; a failed storage query keeps the last gauge values."""
    try:
        await refresh_storage_gauges(db)
    except SQLAlchemyError as e:
        logger.warning("storage_gauge_refresh_failed", error=str(e))

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
