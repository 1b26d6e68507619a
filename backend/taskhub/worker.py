"""Celery worker configuration."""

from celery import Celery
from celery.schedules import crontab

from taskhub.config import get_settings
from taskhub.logging_config import configure_logging

settings = get_settings()
configure_logging(settings)

celery_app = Celery(
    "taskhub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
)

# One scheduler run per beat tick; the run itself is a stateless batch
celery_app.conf.beat_schedule = {
    "process-recurring-tasks": {
        "task": "taskhub.tasks.process_recurring_tasks",
        "schedule": crontab(
            hour=settings.recurring_tasks_cron_hour,
            minute=settings.recurring_tasks_cron_minute,
        ),
    },
}

celery_app.autodiscover_tasks(["taskhub"])
