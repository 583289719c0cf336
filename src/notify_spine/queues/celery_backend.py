"""CeleryQueue - distributed task delivery through Celery."""

from __future__ import annotations

from notify_spine.logging import get_logger

logger = get_logger(__name__)


class CeleryQueue:
    """Submits task ids to the ``synchronize_task`` Celery task.

    Retries are scheduled by the dispatcher through ``countdown``; the
    Celery task itself never retries.
    """

    name = "celery"

    def __init__(self, queue: str | None = None):
        self._queue = queue

    def enqueue(self, task_id: str, delay: float = 0.0) -> str:
        from notify_spine.tasks import synchronize_task

        options = {}
        if delay > 0:
            options["countdown"] = delay
        if self._queue:
            options["queue"] = self._queue
        result = synchronize_task.apply_async(args=[task_id], **options)

        logger.info(
            "task_submitted_to_celery",
            task_id=task_id,
            celery_task_id=result.id,
            delay=delay,
        )
        return result.id
