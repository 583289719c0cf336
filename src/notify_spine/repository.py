"""Session-backed repository for tasks, sync logs and notifiable lookup.

The engine never touches the session directly for its own tables; it goes
through :class:`SyncRepository` so the data access stays in one place::

    SyncRepository(session)
      ├── has_sync_log(ref, endpoint)      ─ gate for the full-field sync
      ├── touch_sync_log(ref, endpoint)    ─ create or bump synced_at
      ├── delete_sync_logs(ref)            ─ cascade with the entity
      ├── add_task / get_task / claim_task / list_tasks
      └── load_notifiable(task)            ─ live entity for payload values
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from notify_spine.errors import ConfigError
from notify_spine.orm.base import utcnow
from notify_spine.orm.tables import SyncLogTable, TaskStatus, TaskTable
from notify_spine.registry import NotifiableRegistry, get_default_registry


@dataclass(frozen=True)
class EntityRef:
    """Polymorphic reference to a notifiable row."""

    type_name: str
    id: str

    @classmethod
    def of(cls, entity: Any) -> EntityRef | None:
        """Reference for a persistent entity; ``None`` before it has an identity."""
        identity = inspect(entity).identity
        if identity is None:
            return None
        if len(identity) != 1:
            raise ConfigError(
                f"{type(entity).__name__} must have a single-column primary key to be notifiable"
            )
        return cls(type(entity).__name__, str(identity[0]))


class SyncRepository:
    """Data access for the sync engine over one SQLAlchemy session."""

    def __init__(self, session: Session, registry: NotifiableRegistry | None = None) -> None:
        self.session = session
        self.registry = registry or get_default_registry()

    # ------------------------------------------------------------------ #
    # Sync logs
    # ------------------------------------------------------------------ #

    def _sync_log(self, ref: EntityRef, endpoint: str) -> SyncLogTable | None:
        stmt = select(SyncLogTable).where(
            SyncLogTable.logable_type == ref.type_name,
            SyncLogTable.logable_id == ref.id,
            SyncLogTable.endpoint == endpoint,
        )
        return self.session.scalars(stmt).first()

    def has_sync_log(self, ref: EntityRef, endpoint: str) -> bool:
        return self._sync_log(ref, endpoint) is not None

    def touch_sync_log(
        self,
        ref: EntityRef,
        endpoint: str,
        at: datetime.datetime | None = None,
    ) -> SyncLogTable:
        """Record a successful sync; last write wins on ``synced_at``.

        The row is flushed so that change tracking later in the same
        transaction (e.g. a success hook that saves the entity) sees it.
        """
        at = at or utcnow()
        log = self._sync_log(ref, endpoint)
        if log is None:
            log = SyncLogTable(
                logable_type=ref.type_name,
                logable_id=ref.id,
                endpoint=endpoint,
                synced_at=at,
            )
            self.session.add(log)
        else:
            log.synced_at = at
        self.session.flush()
        return log

    def sync_logs_for(self, ref: EntityRef) -> list[SyncLogTable]:
        stmt = select(SyncLogTable).where(
            SyncLogTable.logable_type == ref.type_name,
            SyncLogTable.logable_id == ref.id,
        )
        return list(self.session.scalars(stmt))

    def delete_sync_logs(self, ref: EntityRef) -> int:
        logs = self.sync_logs_for(ref)
        for log in logs:
            self.session.delete(log)
        return len(logs)

    # ------------------------------------------------------------------ #
    # Tasks
    # ------------------------------------------------------------------ #

    def add_task(self, task: TaskTable) -> TaskTable:
        self.session.add(task)
        return task

    def get_task(self, task_id: str) -> TaskTable | None:
        return self.session.get(TaskTable, task_id)

    def claim_task(self, task_id: str) -> TaskTable | None:
        """Load *task_id* with a row lock held until the transaction ends.

        Returns ``None`` when the row does not exist or another worker holds
        it.  SQLite ignores the lock clause.
        """
        stmt = (
            select(TaskTable)
            .where(TaskTable.id == task_id)
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        return self.session.scalars(stmt).first()

    def list_tasks(
        self,
        status: TaskStatus | str | None = None,
        endpoint: str | None = None,
        notifiable_type: str | None = None,
        exhausted: bool | None = None,
        limit: int | None = 100,
    ) -> Sequence[TaskTable]:
        stmt = select(TaskTable)
        if status is not None:
            stmt = stmt.where(TaskTable.status == TaskStatus(status).value)
        if endpoint is not None:
            stmt = stmt.where(TaskTable.endpoint == endpoint)
        if notifiable_type is not None:
            stmt = stmt.where(TaskTable.notifiable_type == notifiable_type)
        if exhausted is True:
            stmt = stmt.where(TaskTable.exhausted_at.is_not(None))
        elif exhausted is False:
            stmt = stmt.where(TaskTable.exhausted_at.is_(None))
        stmt = stmt.order_by(TaskTable.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def tasks_for(self, ref: EntityRef) -> list[TaskTable]:
        stmt = (
            select(TaskTable)
            .where(
                TaskTable.notifiable_type == ref.type_name,
                TaskTable.notifiable_id == ref.id,
            )
            .order_by(TaskTable.created_at)
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------ #
    # Notifiables
    # ------------------------------------------------------------------ #

    def load_notifiable(self, task: TaskTable) -> Any | None:
        """Live entity a task belongs to, or ``None`` if it has been deleted."""
        model = self.registry.model_for(task.notifiable_type)
        pk_column = inspect(model).primary_key[0]
        try:
            python_type = pk_column.type.python_type
        except NotImplementedError:
            python_type = str
        return self.session.get(model, python_type(task.notifiable_id))
