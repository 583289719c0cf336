"""Celery application configuration."""

from celery import Celery

from notify_spine.config import get_settings

settings = get_settings()

celery_app = Celery(
    "notify_spine",
    broker=settings.celery_broker_url or settings.redis_url,
    backend=settings.redis_url,
    include=["notify_spine.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_default_queue=settings.celery_task_default_queue,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Time settings
    timezone="UTC",
    enable_utc=True,
    # Result backend
    result_expires=86400,  # 24 hours
    task_track_started=True,
)
