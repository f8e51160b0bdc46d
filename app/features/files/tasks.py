"""
Scheduled file maintenance.

Tasks run in Celery workers, separate from the API server.
"""

import asyncio

from app.core.celery_app import celery_app
from app.core.database import db_manager
from app.core.logging_config import get_logger
from app.core.metrics import task_duration_seconds, track_time
from app.features.files.service import file_service

logger = get_logger(__name__)


@celery_app.task(name="files.purge_trash", bind=True, max_retries=3)
def purge_trash(self, retention_days: int | None = None) -> dict:
    """
    Permanently delete files kept in the trash past retention.

    Scheduled daily by Celery beat.
    """
    logger.info("trash_purge_started", task_id=self.request.id)
    db_manager.init()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        result = loop.run_until_complete(purge_trash_async(retention_days))
    except Exception as exc:
        logger.error("trash_purge_task_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
    finally:
        loop.run_until_complete(db_manager.close())
        loop.close()

    return result


@track_time(task_duration_seconds, {"task_name": "files.purge_trash", "status": "completed"})
async def purge_trash_async(retention_days: int | None = None) -> dict:
    result = None
    async for db in db_manager.get_session():
        result = await file_service.purge_trash(db, retention_days=retention_days)
    return result.model_dump() if result else {}
