"""
Celery application configuration.

Celery runs the periodic maintenance jobs:
- Marking reminders whose time has come as notified
- Purging files that have been in the trash past retention
"""

from celery import Celery
from celery.schedules import crontab
from celery.signals import task_failure, task_success

from app.config import settings
from app.core.error_tracking import error_tracker
from app.core.logging_config import get_logger

logger = get_logger(__name__)

celery_app = Celery(
    "filevault",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "app.features.reminders.tasks",
        "app.features.files.tasks",
    ],
)

celery_app.conf.update(
    # Task execution
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "reminders.*": {"queue": "reminders"},
        "files.*": {"queue": "maintenance"},
    },

    result_expires=3600,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=900,
    task_soft_time_limit=840,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Retry settings
    task_default_max_retries=3,
    task_default_retry_delay=60,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)


@task_success.connect
def task_success_handler(sender=None, result=None, **kwargs):
    """Log successful task completion."""
    logger.info("task_succeeded", task_name=sender.name, result=result)


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, **kwargs):
    """Report failed maintenance runs; the next beat tick retries them."""
    logger.error("task_failed", task_name=sender.name, task_id=task_id, error=str(exception))
    error_tracker.capture_exception(exception, context={"task": sender.name, "task_id": task_id})


# Celery beat schedule (periodic tasks)
celery_app.conf.beat_schedule = {
    "mark-due-reminders": {
        "task": "reminders.mark_due",
        "schedule": float(settings.reminder_check_interval_seconds),
    },
    "purge-trash": {
        "task": "files.purge_trash",
        "schedule": crontab(hour=settings.trash_purge_hour_utc, minute=0),
    },
}
