"""Celery application bootstrap used by workers and FastAPI."""

from __future__ import annotations

from celery import Celery
from celery.signals import worker_process_init

from jrdev.core.config import settings
from jrdev.core.logging import setup_logging

celery_app = Celery(
    "jrdev",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["jrdev.tasks.webhooks"],
)

celery_app.conf.update(
    task_default_queue=settings.CELERY_DEFAULT_QUEUE,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=False,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    broker_heartbeat=settings.CELERY_BROKER_HEARTBEAT,
    broker_connection_retry_on_startup=True,
)


@worker_process_init.connect
def _configure_worker_logging(**_kwargs) -> None:
    setup_logging(settings.LOG_LEVEL)


__all__ = ["celery_app"]
