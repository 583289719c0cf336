"""SQLAlchemy session events that drive the notifier.

Event flow for one ``session.commit()``::

    before_flush          new / dirty / deleted notifiables
                          → Notifier.on_before_write (gather changes)
                          → staged in session.info
    after_flush_postexec  primary keys assigned
                          → Notifier.on_after_write (build tasks)
                          → tasks added to the session, ids queued
                          → sync logs of destroyed entities removed
    (commit flushes again, writing the task rows)
    after_commit          → enqueue(task_id) for each queued id
    after_rollback        → staged and queued ids discarded

Install on a ``sessionmaker``, a ``Session`` subclass, or one session::

    listeners = install_listeners(SessionLocal)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from notify_spine.config import is_active
from notify_spine.endpoints import LifecycleEvent
from notify_spine.logging import get_logger
from notify_spine.notifier import Notifier
from notify_spine.registry import NotifiableRegistry, get_default_registry
from notify_spine.repository import EntityRef, SyncRepository

logger = get_logger(__name__)

_STAGED = "notify_spine.staged"
_QUEUED = "notify_spine.queued"

Enqueue = Callable[[str], Any]


def _default_enqueue(task_id: str) -> None:
    from notify_spine.runtime import get_dispatcher

    get_dispatcher().enqueue(task_id)


class SessionListeners:
    """Bundle of session event handlers bound to one enqueue function."""

    def __init__(
        self,
        enqueue: Enqueue | None = None,
        registry: NotifiableRegistry | None = None,
    ) -> None:
        self._enqueue = enqueue or _default_enqueue
        self._registry = registry

    @property
    def registry(self) -> NotifiableRegistry:
        return self._registry or get_default_registry()

    def install(self, target: Any) -> SessionListeners:
        event.listen(target, "before_flush", self.before_flush)
        event.listen(target, "after_flush_postexec", self.after_flush_postexec)
        event.listen(target, "after_commit", self.after_commit)
        event.listen(target, "after_rollback", self.after_rollback)
        return self

    def remove(self, target: Any) -> None:
        event.remove(target, "before_flush", self.before_flush)
        event.remove(target, "after_flush_postexec", self.after_flush_postexec)
        event.remove(target, "after_commit", self.after_commit)
        event.remove(target, "after_rollback", self.after_rollback)

    def _notifier(self, session: Session) -> Notifier:
        return Notifier(SyncRepository(session, self.registry), self.registry)

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        if not is_active():
            return
        registry = self.registry
        candidates: list[tuple[Any, LifecycleEvent]] = []
        candidates += [(obj, LifecycleEvent.CREATE) for obj in session.new]
        candidates += [
            (obj, LifecycleEvent.UPDATE)
            for obj in session.dirty
            if session.is_modified(obj, include_collections=False)
        ]
        candidates += [(obj, LifecycleEvent.DESTROY) for obj in session.deleted]
        candidates = [(obj, ev) for obj, ev in candidates if registry.is_notifiable(obj)]
        if not candidates:
            return

        notifier = self._notifier(session)
        staged = session.info.setdefault(_STAGED, [])
        with session.no_autoflush:
            for obj, lifecycle_event in candidates:
                notifier.on_before_write(obj, lifecycle_event)
                staged.append((obj, lifecycle_event))

    def after_flush_postexec(self, session: Session, flush_context: Any) -> None:
        staged = session.info.pop(_STAGED, None)
        if not staged:
            return

        notifier = self._notifier(session)
        queued = session.info.setdefault(_QUEUED, [])
        with session.no_autoflush:
            for obj, lifecycle_event in staged:
                for task in notifier.on_after_write(obj, lifecycle_event):
                    queued.append(task.id)
                if lifecycle_event is LifecycleEvent.DESTROY:
                    ref = EntityRef.of(obj)
                    if ref is not None:
                        notifier.repository.delete_sync_logs(ref)

    def after_commit(self, session: Session) -> None:
        queued = session.info.pop(_QUEUED, None)
        if not queued:
            return
        for task_id in queued:
            try:
                self._enqueue(task_id)
            except Exception:
                # The row is committed as pending; `tasks requeue` picks it up.
                logger.exception("task_enqueue_failed", task_id=task_id)

    def after_rollback(self, session: Session) -> None:
        session.info.pop(_STAGED, None)
        dropped = session.info.pop(_QUEUED, None)
        if dropped:
            logger.debug("queued_tasks_discarded", task_ids=dropped)


def install_listeners(
    target: Any,
    enqueue: Enqueue | None = None,
    registry: NotifiableRegistry | None = None,
) -> SessionListeners:
    """Attach sync listeners to *target* and return them (for ``remove``)."""
    return SessionListeners(enqueue=enqueue, registry=registry).install(target)
