"""SQLAlchemy 2.0 table definitions for tasks and sync logs.

``notify_tasks``
    One row per (entity, endpoint, lifecycle event) that needs syncing.
    Rows reference their entity polymorphically by type name and primary
    key and are never cascade-deleted with it, so the outbound history
    survives the entity for audit.

``notify_sync_logs``
    One row per (entity, endpoint) that has synced successfully at least
    once.  Removed together with the entity.

Task status graph::

    PENDING → DONE | FAILED
    FAILED  → DONE | FAILED   (later attempts)
    DONE    → (terminal)
"""

from __future__ import annotations

import datetime
import uuid
from enum import Enum
from typing import Any

from sqlalchemy import Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from notify_spine.orm.base import NotifyBase, TimestampMixin, utcnow


class InvalidTransitionError(ValueError):
    """Raised when an illegal task status transition is attempted."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid TaskStatus transition: {current} → {target}")


class TaskStatus(str, Enum):
    """Execution status of a sync task."""

    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


TASK_VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.DONE, TaskStatus.FAILED}),
    TaskStatus.FAILED: frozenset({TaskStatus.DONE, TaskStatus.FAILED}),
    TaskStatus.DONE: frozenset(),  # terminal
}


def validate_task_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal."""
    if target not in TASK_VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


def _new_id() -> str:
    return str(uuid.uuid4())


class TaskTable(TimestampMixin, NotifyBase):
    __tablename__ = "notify_tasks"
    __table_args__ = (
        Index("ix_notify_tasks_notifiable", "notifiable_type", "notifiable_id"),
        Index("ix_notify_tasks_status", "status"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    notifiable_type: Mapped[str] = mapped_column(Text, nullable=False)
    notifiable_id: Mapped[str] = mapped_column(Text, nullable=False)
    endpoint: Mapped[str] = mapped_column(Text, nullable=False)
    method: Mapped[str] = mapped_column(Text, nullable=False)
    fields_updated: Mapped[list] = mapped_column(default=list, nullable=False)
    identificators: Mapped[dict] = mapped_column(default=dict, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=TaskStatus.PENDING.value, nullable=False)
    response: Mapped[dict | None] = mapped_column(default=None)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    exhausted_at: Mapped[datetime.datetime | None] = mapped_column(default=None)

    def __init__(self, **kwargs: Any) -> None:
        # Column defaults only apply at flush; the id and status are needed
        # before that (enqueue-by-id, status checks on unflushed tasks).
        kwargs.setdefault("id", _new_id())
        kwargs.setdefault("status", TaskStatus.PENDING.value)
        kwargs.setdefault("attempts", 0)
        kwargs.setdefault("fields_updated", [])
        kwargs.setdefault("identificators", {})
        super().__init__(**kwargs)

    @property
    def task_status(self) -> TaskStatus:
        return TaskStatus(self.status)

    @property
    def is_done(self) -> bool:
        return self.task_status is TaskStatus.DONE

    @property
    def is_exhausted(self) -> bool:
        return self.exhausted_at is not None

    def _transition(self, target: TaskStatus) -> None:
        validate_task_transition(self.task_status, target)
        self.status = target.value

    def begin_attempt(self) -> int:
        """Count a new execution attempt; returns the attempt number."""
        if self.is_done:
            raise InvalidTransitionError(self.status, "attempt")
        self.attempts += 1
        return self.attempts

    def mark_done(self, response: dict[str, Any] | None) -> None:
        self._transition(TaskStatus.DONE)
        self.response = response
        self.completed_at = utcnow()

    def mark_failed(self, response: dict[str, Any] | None) -> None:
        self._transition(TaskStatus.FAILED)
        self.response = response

    def mark_exhausted(self) -> None:
        if self.task_status is not TaskStatus.FAILED:
            raise InvalidTransitionError(self.status, "exhausted")
        self.exhausted_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "notifiable_type": self.notifiable_type,
            "notifiable_id": self.notifiable_id,
            "endpoint": self.endpoint,
            "method": self.method,
            "fields_updated": list(self.fields_updated or []),
            "identificators": dict(self.identificators or {}),
            "status": self.status,
            "attempts": self.attempts,
            "response": self.response,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "exhausted_at": self.exhausted_at.isoformat() if self.exhausted_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<TaskTable {self.id} {self.method} {self.endpoint} "
            f"{self.notifiable_type}#{self.notifiable_id} {self.status}>"
        )


class SyncLogTable(NotifyBase):
    __tablename__ = "notify_sync_logs"
    __table_args__ = (
        UniqueConstraint("logable_type", "logable_id", "endpoint", name="uq_notify_sync_logs_entity_endpoint"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    logable_type: Mapped[str] = mapped_column(Text, nullable=False)
    logable_id: Mapped[str] = mapped_column(Text, nullable=False)
    endpoint: Mapped[str] = mapped_column(Text, nullable=False)
    synced_at: Mapped[datetime.datetime] = mapped_column(nullable=False, default=utcnow)
