"""Dispatch decision and task construction.

For each lifecycle event the notifier runs two fixed steps:

* ``on_before_write(entity, event)``: gather changed fields while the
  pre-flush attribute history is still available.
* ``on_after_write(entity, event)``: for every endpoint of the entity,
  decide whether a task is needed and build it.

Decision per endpoint (in order)::

    engine inactive                    → nothing
    entity.skip_api_notify             → skip
    endpoint does not allow method     → skip
    skip predicate is truthy           → skip
    method is delete                   → task
    no changed fields                  → skip
    otherwise                          → task

Tasks are added to the repository's session; enqueueing is left to the
caller because it must wait for the transaction to commit.
"""

from __future__ import annotations

from typing import Any

from notify_spine.config import is_active
from notify_spine.endpoints import (
    LIFECYCLE_METHODS,
    EndpointConfig,
    HttpMethod,
    LifecycleEvent,
    evaluate_predicate,
)
from notify_spine.errors import ConfigError
from notify_spine.logging import get_logger
from notify_spine.orm.tables import TaskTable
from notify_spine.registry import NotifiableRegistry
from notify_spine.repository import EntityRef, SyncRepository
from notify_spine.tracker import ChangeTracker

logger = get_logger(__name__)


class Notifier:
    """Turns lifecycle events on notifiable entities into sync tasks."""

    def __init__(
        self,
        repository: SyncRepository,
        registry: NotifiableRegistry | None = None,
        tracker: ChangeTracker | None = None,
    ) -> None:
        self.repository = repository
        self.registry = registry or repository.registry
        self.tracker = tracker or ChangeTracker(repository, self.registry)

    def on_before_write(self, entity: Any, event: LifecycleEvent | str) -> None:
        if not is_active():
            return
        changes = self.tracker.gather(entity)
        logger.debug(
            "changes_gathered",
            notifiable_type=type(entity).__name__,
            lifecycle_event=LifecycleEvent(event).value,
            changes=changes,
        )

    def on_after_write(self, entity: Any, event: LifecycleEvent | str) -> list[TaskTable]:
        if not is_active():
            return []
        method = LIFECYCLE_METHODS[LifecycleEvent(event)]
        spec = self.registry.spec_for(entity)

        tasks = []
        for endpoint in spec.endpoints.values():
            reason = self.skip_reason(entity, endpoint, method)
            if reason is not None:
                logger.debug(
                    "sync_skipped",
                    notifiable_type=spec.type_name,
                    endpoint=endpoint.name,
                    method=method.value,
                    reason=reason,
                )
                continue
            tasks.append(self.create_task(entity, endpoint, method))
        self.tracker.forget(entity)
        return tasks

    def skip_reason(
        self,
        entity: Any,
        endpoint: EndpointConfig,
        method: HttpMethod,
    ) -> str | None:
        """Why no task is needed for this endpoint, or ``None`` if one is."""
        if getattr(entity, "skip_api_notify", False):
            return "skip_api_notify"
        if not endpoint.allows(method):
            return "method_not_allowed"

        predicate = endpoint.skip_predicate_for(method)
        if predicate is None:
            predicate = self.registry.spec_for(entity).skip_synchronize
        if evaluate_predicate(predicate, entity):
            return "skip_predicate"

        if method is HttpMethod.DELETE:
            return None
        if not self.tracker.has_changed_fields(entity, endpoint.name):
            return "no_changes"
        return None

    def create_task(self, entity: Any, endpoint: EndpointConfig, method: HttpMethod) -> TaskTable:
        ref = EntityRef.of(entity)
        if ref is None:
            raise ConfigError(
                f"{type(entity).__name__} has no identity yet; tasks are built after flush"
            )
        task = TaskTable(
            notifiable_type=ref.type_name,
            notifiable_id=ref.id,
            endpoint=endpoint.name,
            method=method.value,
            fields_updated=self.tracker.changed_fields(entity, endpoint.name),
            identificators=self.tracker.resolve_identificators(entity),
        )
        self.repository.add_task(task)
        logger.info(
            "task_created",
            task_id=task.id,
            notifiable_type=ref.type_name,
            notifiable_id=ref.id,
            endpoint=endpoint.name,
            method=method.value,
            fields=task.fields_updated,
        )
        return task
