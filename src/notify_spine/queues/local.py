"""LocalQueue - in-process queue for development and tests.

Task ids are recorded in FIFO order and run by :meth:`LocalQueue.drain`.
Requested delays are recorded but not waited for.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from typing import Any

from notify_spine.logging import get_logger

logger = get_logger(__name__)


class LocalQueue:
    """FIFO of ``(task_id, delay)`` drained by an explicit call."""

    name = "local"

    def __init__(self) -> None:
        self._items: deque[tuple[str, float]] = deque()
        self._lock = threading.Lock()
        self.history: list[tuple[str, float]] = []

    def enqueue(self, task_id: str, delay: float = 0.0) -> None:
        with self._lock:
            self._items.append((task_id, delay))
            self.history.append((task_id, delay))
        logger.debug("task_enqueued", task_id=task_id, delay=delay, backend=self.name)

    def pending(self) -> list[str]:
        with self._lock:
            return [task_id for task_id, _ in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def pop(self) -> tuple[str, float] | None:
        with self._lock:
            return self._items.popleft() if self._items else None

    def drain(self, execute: Callable[[str], Any], limit: int | None = None) -> int:
        """Run queued ids through *execute* until empty; returns count run.

        Ids enqueued while draining (retries, tasks spawned by hooks) are
        run too.  Exceptions from *execute* propagate.
        """
        processed = 0
        while limit is None or processed < limit:
            item = self.pop()
            if item is None:
                break
            execute(item[0])
            processed += 1
        return processed

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self.history.clear()
