"""SQLAlchemy 2.0 ORM layer for notify-spine.

Modules
-------
base        NotifyBase (declarative base) + TimestampMixin
session     Engine factory, NotifySession, notify_session_factory
tables      TaskTable, SyncLogTable, TaskStatus
"""

from __future__ import annotations

from notify_spine.orm.base import NotifyBase, TimestampMixin, utcnow
from notify_spine.orm.session import (
    NotifySession,
    create_notify_engine,
    notify_session_factory,
)
from notify_spine.orm.tables import (
    TASK_VALID_TRANSITIONS,
    InvalidTransitionError,
    SyncLogTable,
    TaskStatus,
    TaskTable,
    validate_task_transition,
)

__all__ = [
    "NotifyBase",
    "TimestampMixin",
    "utcnow",
    "NotifySession",
    "create_notify_engine",
    "notify_session_factory",
    "TASK_VALID_TRANSITIONS",
    "InvalidTransitionError",
    "SyncLogTable",
    "TaskStatus",
    "TaskTable",
    "validate_task_transition",
]
