"""Dispatcher - runs sync tasks by id and owns the retry state machine.

Task lifecycle::

    PENDING ──attempt──► DONE
       │
       └──attempt──► FAILED ──attempt──► DONE
                       │  ▲
                       └──┘  retry (attempts < max_attempts)
                       │
                       └──► exhausted_at set, ExhaustedSynchronization

Each call to :meth:`Dispatcher.execute` is one attempt in its own session.
The task row is claimed with ``FOR UPDATE SKIP LOCKED`` so a redelivered id
cannot run concurrently, and done or exhausted tasks are skipped, so no
redelivery ever produces an attempt past ``max_attempts``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from notify_spine.errors import ExhaustedSynchronization, TaskNotFound
from notify_spine.logging import LogContext, get_logger
from notify_spine.orm.tables import InvalidTransitionError, TaskStatus, TaskTable
from notify_spine.registry import NotifiableRegistry, get_default_registry
from notify_spine.repository import SyncRepository
from notify_spine.retry import RetryPolicy
from notify_spine.synchronizer import SyncResult, Synchronizer

logger = get_logger(__name__)

ExhaustedCallback = Callable[[TaskTable, ExhaustedSynchronization], Any]


class Dispatcher:
    """Enqueues task ids and executes them with bounded retry.

    Args:
        session_factory: Produces the session each attempt runs in.
        queue: Backend with ``enqueue(task_id, delay)``.
        synchronizer: Performs the remote call for one attempt.
        policy: Attempt bound and backoff.
        on_exhausted: Callbacks run with ``(task, error)`` once a task is
            exhausted, before the error is raised.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        queue: Any,
        synchronizer: Synchronizer,
        policy: RetryPolicy | None = None,
        on_exhausted: Iterable[ExhaustedCallback] = (),
        registry: NotifiableRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.queue = queue
        self.synchronizer = synchronizer
        self.policy = policy or RetryPolicy()
        self._on_exhausted = list(on_exhausted)
        self._registry = registry

    @property
    def registry(self) -> NotifiableRegistry:
        return self._registry or get_default_registry()

    def add_exhausted_callback(self, callback: ExhaustedCallback) -> None:
        self._on_exhausted.append(callback)

    def enqueue(self, task_id: str, delay: float = 0.0) -> Any:
        return self.queue.enqueue(task_id, delay)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def execute(self, task_id: str) -> SyncResult | None:
        """Run one attempt of *task_id*.

        Returns the attempt's result, or ``None`` when nothing ran (unknown
        id, row locked elsewhere, task already done or exhausted).

        Raises:
            ExhaustedSynchronization: The attempt failed and it was the last
                one permitted.
        """
        with LogContext(task_id=task_id):
            with self.session_factory() as session:
                repository = SyncRepository(session, self.registry)
                task = repository.claim_task(task_id)
                if task is None:
                    logger.warning("task_unavailable")
                    return None
                if not self._runnable(task, session):
                    return None

                result = self._attempt(task_id, task, session, repository)
                if result.success:
                    return result

                task = repository.get_task(task_id)
                if self.policy.should_retry(task.attempts):
                    delay = self.policy.next_delay(task.attempts)
                    self.enqueue(task_id, delay)
                    logger.info(
                        "synchronization_retry_scheduled",
                        attempt=task.attempts,
                        max_attempts=self.policy.max_attempts,
                        delay=round(delay, 2),
                    )
                    return result

                task.mark_exhausted()
                session.commit()
                self._exhaust(task)

    def _runnable(self, task: TaskTable, session: Session) -> bool:
        if task.is_done or task.is_exhausted:
            logger.info("task_already_settled", status=task.status, attempts=task.attempts)
            return False
        if self.policy.is_exhausted(task.attempts):
            # Out of attempts but never marked, e.g. the policy was lowered.
            if task.task_status is TaskStatus.FAILED:
                task.mark_exhausted()
                session.commit()
            logger.warning("task_out_of_attempts", status=task.status, attempts=task.attempts)
            return False
        return True

    def _attempt(
        self,
        task_id: str,
        task: TaskTable,
        session: Session,
        repository: SyncRepository,
    ) -> SyncResult:
        attempt = task.begin_attempt()
        logger.debug("synchronization_attempt", attempt=attempt, endpoint=task.endpoint)
        try:
            entity = repository.load_notifiable(task)
            result = self.synchronizer.synchronize(task, entity, repository)
            session.commit()
            return result
        except Exception as exc:
            session.rollback()
            logger.exception("synchronization_error", attempt=attempt)
            error = f"{type(exc).__name__}: {exc}"

        # The rollback discarded the attempt count; record it with the error.
        task = repository.claim_task(task_id)
        task.begin_attempt()
        result = SyncResult(success=False, error=error)
        task.mark_failed(result.to_dict())
        session.commit()
        return result

    def _exhaust(self, task: TaskTable) -> None:
        error = ExhaustedSynchronization(
            task.id,
            task.attempts,
            task.response,
        ).with_context(
            endpoint=task.endpoint,
            method=task.method,
            notifiable_type=task.notifiable_type,
            notifiable_id=task.notifiable_id,
        )
        logger.warning(
            "synchronization_exhausted",
            attempts=task.attempts,
            endpoint=task.endpoint,
            method=task.method,
            response=task.response,
        )
        for callback in self._on_exhausted:
            callback(task, error)
        raise error

    # ------------------------------------------------------------------ #
    # Recovery
    # ------------------------------------------------------------------ #

    def requeue_pending(self, limit: int | None = None) -> list[str]:
        """Enqueue every pending task again; returns the ids sent."""
        with self.session_factory() as session:
            repository = SyncRepository(session, self.registry)
            task_ids = [
                task.id
                for task in repository.list_tasks(status=TaskStatus.PENDING, limit=limit)
            ]
        for task_id in task_ids:
            self.enqueue(task_id)
        logger.info("pending_tasks_requeued", count=len(task_ids))
        return task_ids

    def replay(self, task_id: str) -> str:
        """Copy an exhausted task into a fresh pending one and enqueue it.

        Raises:
            TaskNotFound: No task with *task_id*.
            InvalidTransitionError: The task is not exhausted.
        """
        with self.session_factory() as session:
            repository = SyncRepository(session, self.registry)
            original = repository.get_task(task_id)
            if original is None:
                raise TaskNotFound(task_id)
            if not original.is_exhausted:
                raise InvalidTransitionError(original.status, "replay")
            task = repository.add_task(
                TaskTable(
                    notifiable_type=original.notifiable_type,
                    notifiable_id=original.notifiable_id,
                    endpoint=original.endpoint,
                    method=original.method,
                    fields_updated=list(original.fields_updated),
                    identificators=dict(original.identificators),
                )
            )
            new_id = task.id
            session.commit()

        self.enqueue(new_id)
        logger.info("task_replayed", task_id=task_id, replay_task_id=new_id)
        return new_id
