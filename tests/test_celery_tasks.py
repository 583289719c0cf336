"""Tests for ``notify_spine.tasks`` and the Celery app configuration."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from notify_spine.celery_app import celery_app
from notify_spine.errors import ExhaustedSynchronization
from notify_spine.synchronizer import SyncResult
from notify_spine.tasks import synchronize_task


class TestCeleryApp:
    def test_configuration(self):
        conf = celery_app.conf
        assert conf.task_serializer == "json"
        assert conf.accept_content == ["json"]
        assert conf.task_acks_late is True
        assert conf.worker_prefetch_multiplier == 1

    def test_task_registered(self):
        assert "notify_spine.tasks.synchronize_task" in celery_app.tasks

    def test_task_never_retries_itself(self):
        assert synchronize_task.max_retries == 0


class TestSynchronizeTask:
    @patch("notify_spine.runtime.get_dispatcher")
    def test_runs_one_attempt(self, mock_get):
        mock_get.return_value.execute.return_value = SyncResult(success=True, status_code=200)

        result = synchronize_task.run("task-1")

        mock_get.return_value.execute.assert_called_once_with("task-1")
        assert result["success"] is True
        assert result["status_code"] == 200

    @patch("notify_spine.runtime.get_dispatcher")
    def test_nothing_ran(self, mock_get):
        mock_get.return_value.execute.return_value = None
        assert synchronize_task.run("task-1") is None

    @patch("notify_spine.runtime.get_dispatcher")
    def test_exhaustion_propagates(self, mock_get):
        mock_get.return_value = MagicMock()
        mock_get.return_value.execute.side_effect = ExhaustedSynchronization("task-1", 5, None)

        with pytest.raises(ExhaustedSynchronization):
            synchronize_task.run("task-1")
