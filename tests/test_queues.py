"""Tests for queue backends."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from notify_spine.config import Settings
from notify_spine.queues import CeleryQueue, LocalQueue, get_queue


class TestLocalQueue:
    def test_fifo_and_history(self):
        queue = LocalQueue()
        queue.enqueue("a")
        queue.enqueue("b", delay=30.0)

        assert queue.pending() == ["a", "b"]
        assert len(queue) == 2
        assert queue.history == [("a", 0.0), ("b", 30.0)]
        assert queue.pop() == ("a", 0.0)
        assert queue.pending() == ["b"]

    def test_pop_empty(self):
        assert LocalQueue().pop() is None

    def test_drain_runs_items_enqueued_while_draining(self):
        queue = LocalQueue()
        seen = []

        def execute(task_id):
            seen.append(task_id)
            if task_id == "a":
                queue.enqueue("a-retry")

        queue.enqueue("a")
        queue.enqueue("b")

        assert queue.drain(execute) == 3
        assert seen == ["a", "b", "a-retry"]
        assert len(queue) == 0

    def test_drain_limit(self):
        queue = LocalQueue()
        for task_id in "abc":
            queue.enqueue(task_id)
        assert queue.drain(lambda task_id: None, limit=2) == 2
        assert queue.pending() == ["c"]

    def test_drain_propagates_errors(self):
        queue = LocalQueue()
        queue.enqueue("a")
        queue.enqueue("b")

        def execute(task_id):
            raise RuntimeError(task_id)

        with pytest.raises(RuntimeError, match="a"):
            queue.drain(execute)
        assert queue.pending() == ["b"]

    def test_clear(self):
        queue = LocalQueue()
        queue.enqueue("a")
        queue.clear()
        assert queue.pending() == []
        assert queue.history == []


class TestCeleryQueue:
    @patch("notify_spine.tasks.synchronize_task")
    def test_enqueue_without_delay(self, mock_task):
        mock_task.apply_async.return_value = MagicMock(id="celery-1")

        assert CeleryQueue(queue="sync").enqueue("task-1") == "celery-1"
        mock_task.apply_async.assert_called_once_with(args=["task-1"], queue="sync")

    @patch("notify_spine.tasks.synchronize_task")
    def test_enqueue_with_countdown(self, mock_task):
        mock_task.apply_async.return_value = MagicMock(id="celery-2")

        CeleryQueue().enqueue("task-1", delay=60.0)
        mock_task.apply_async.assert_called_once_with(args=["task-1"], countdown=60.0)


class TestGetQueue:
    def test_local(self):
        assert isinstance(get_queue(Settings(_env_file=None, backend_type="local")), LocalQueue)

    def test_celery(self):
        queue = get_queue(Settings(_env_file=None, backend_type="celery", celery_task_default_queue="q"))
        assert isinstance(queue, CeleryQueue)
        assert queue.name == "celery"
