"""Queue backends: where enqueued task ids go.

Each backend provides ``enqueue(task_id, delay=0.0)``.
"""

from __future__ import annotations

from typing import Any, Protocol

from notify_spine.config import Settings, get_settings
from notify_spine.queues.celery_backend import CeleryQueue
from notify_spine.queues.local import LocalQueue


class Queue(Protocol):
    name: str

    def enqueue(self, task_id: str, delay: float = 0.0) -> Any:
        ...


def get_queue(settings: Settings | None = None) -> Queue:
    """Queue backend selected by ``NOTIFY_BACKEND_TYPE``."""
    settings = settings or get_settings()
    if settings.backend_type == "celery":
        return CeleryQueue(queue=settings.celery_task_default_queue)
    return LocalQueue()


__all__ = ["Queue", "CeleryQueue", "LocalQueue", "get_queue"]
