"""
Scheduled reminder processing.

Tasks run in Celery workers, separate from the API server.
"""

import asyncio

from app.core.celery_app import celery_app
from app.core.database import db_manager
from app.core.logging_config import get_logger
from app.core.metrics import task_duration_seconds, track_time
from app.features.reminders.service import reminder_service

logger = get_logger(__name__)


@celery_app.task(name="reminders.mark_due", bind=True)
def mark_due(self) -> dict:
    """
    Flag pending reminders whose time has come as notified.

    Scheduled every 5 minutes by Celery beat.
    """
    db_manager.init()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        count = loop.run_until_complete(mark_due_async())
    finally:
        loop.run_until_complete(db_manager.close())
        loop.close()

    logger.info("mark_due_finished", task_id=self.request.id, notified=count)
    return {"notified": count}


@track_time(task_duration_seconds, {"task_name": "reminders.mark_due", "status": "completed"})
async def mark_due_async() -> int:
    count = 0
    # Let the session generator run to completion so it commits.
    async for db in db_manager.get_session():
        count = await reminder_service.mark_due(db)
    return count
