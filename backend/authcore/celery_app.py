from __future__ import annotations

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from authcore.core.config import settings
from authcore.core.logging import configure_logging


logger = logging.getLogger(__name__)

BROKER_CONFIGURED = bool(settings.CELERY_BROKER_URL)

celery_app = Celery("authcore-sessions", include=["authcore.tasks.sessions"])

if BROKER_CONFIGURED:
    broker_url = settings.CELERY_BROKER_URL
else:
    broker_url = "memory://"
    logger.warning("CELERY_BROKER_URL is not configured; Celery will run in in-memory mode.")

celery_app.conf.update(
    broker_url=broker_url,
    result_backend=None,
    task_default_queue="session-maintenance",
    task_serializer="json",
    accept_content=["json"],
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    # Daily 02:00: drop expired sessions
    "purge-expired-sessions": {
        "task": "sessions.purge_expired",
        "schedule": crontab(hour=2, minute=0),
    },
    # Sundays 03:00: drop old revoked/expired rows
    "purge-stale-sessions": {
        "task": "sessions.purge_stale",
        "schedule": crontab(hour=3, minute=0, day_of_week=0),
    },
    # Hourly: log table statistics
    "log-session-stats": {
        "task": "sessions.log_stats",
        "schedule": crontab(minute=0),
    },
}


@setup_logging.connect
def _configure_worker_logging(**kwargs):  # noqa: ARG001
    # Connecting here stops celery from installing its own root handlers.
    configure_logging()


def enqueue(task, *args, **kwargs):
    """
    Convenience helper so callers can enqueue tasks without caring
    whether the broker is configured. In tests/local dev we execute tasks inline.
    """
    if BROKER_CONFIGURED:
        return task.delay(*args, **kwargs)
    logger.info("Celery broker not configured; running %s synchronously", task.name)
    return task.apply(args=args, kwargs=kwargs)
