"""Celery tasks for sync task execution."""

from notify_spine.celery_app import celery_app
from notify_spine.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    name="notify_spine.tasks.synchronize_task",
    max_retries=0,  # Retries are scheduled by the Dispatcher
    acks_late=True,
)
def synchronize_task(self, task_id: str):
    """
    Run one attempt of a sync task.

    Returns the attempt's result as a dict, or ``None`` when nothing ran.
    ``ExhaustedSynchronization`` propagates so the Celery task is marked
    failed on the final attempt.
    """
    from notify_spine.runtime import get_dispatcher

    log = logger.bind(task_id=task_id, celery_task_id=self.request.id)
    log.info("celery_task_started")

    result = get_dispatcher().execute(task_id)

    log.info("celery_task_completed", success=result.success if result else None)
    return result.to_dict() if result else None
