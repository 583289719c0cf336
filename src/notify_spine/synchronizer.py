"""Synchronizer: one attempt at delivering a task to its endpoint.

``synchronize(task, entity, repository)``:

1. Resolve the address from ``task.endpoint`` and ``task.identificators``.
2. Build the body from ``task.fields_updated``.  Field *names* are the
   snapshot taken when the task was created; *values* are read from the
   entity now, so quick successive updates converge on the latest state.
3. Send through the transport and normalize the outcome.
4. Record the outcome on the task, touch the sync log on success and run
   the ``(endpoint, method, outcome)`` hook.

The caller owns the transaction; nothing here commits.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic_core import to_jsonable_python

from notify_spine.address import AddressResolver
from notify_spine.endpoints import HttpMethod
from notify_spine.errors import UnresolvedIdentifier
from notify_spine.logging import get_logger
from notify_spine.orm.base import utcnow
from notify_spine.orm.tables import TaskTable
from notify_spine.registry import NotifiableRegistry, Outcome, get_default_registry
from notify_spine.repository import EntityRef, SyncRepository
from notify_spine.tracker import get_value
from notify_spine.transport import Transport, TransportResponse

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncResult:
    """Normalized result handed to hooks and stored on the task."""

    success: bool
    status_code: int | None = None
    body: Any = None
    error: str | None = None

    @classmethod
    def from_response(cls, response: TransportResponse) -> SyncResult:
        return cls(
            success=response.ok,
            status_code=response.status_code,
            body=response.body,
            error=response.error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status_code": self.status_code,
            "body": to_jsonable_python(self.body, fallback=str),
            "error": self.error,
        }


class Synchronizer:
    """Builds and sends the request for a task and records the outcome."""

    def __init__(
        self,
        transport: Transport,
        resolve_address: AddressResolver,
        registry: NotifiableRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._transport = transport
        self._resolve_address = resolve_address
        self._registry = registry
        self._clock = clock

    @property
    def registry(self) -> NotifiableRegistry:
        return self._registry or get_default_registry()

    def build_payload(self, task: TaskTable, entity: Any | None) -> dict[str, Any]:
        """``{field: current value}`` for the task's frozen field names."""
        if entity is None:
            return {}
        return {
            name: to_jsonable_python(get_value(entity, name), fallback=str)
            for name in task.fields_updated
        }

    def synchronize(
        self,
        task: TaskTable,
        entity: Any | None,
        repository: SyncRepository,
    ) -> SyncResult:
        method = HttpMethod(task.method)
        log = logger.bind(task_id=task.id, endpoint=task.endpoint, method=method.value)

        try:
            address = self._resolve_address(task.endpoint, task.identificators)
        except UnresolvedIdentifier as exc:
            log.warning("identifier_unresolved", **exc.to_dict())
            result = SyncResult(success=False, error=str(exc))
        else:
            body = self.build_payload(task, entity)
            log.debug("synchronization_request", url=address, body=body)
            result = SyncResult.from_response(self._transport.send(address, method, body))

        if result.success:
            self._on_success(task, entity, result, repository)
            log.info("synchronization_succeeded", status_code=result.status_code)
        else:
            self._on_failure(task, entity, result)
            log.warning(
                "synchronization_failed",
                status_code=result.status_code,
                error=result.error,
                attempts=task.attempts,
            )
        return result

    def _on_success(
        self,
        task: TaskTable,
        entity: Any | None,
        result: SyncResult,
        repository: SyncRepository,
    ) -> None:
        task.mark_done(result.to_dict())
        if entity is not None:
            ref = EntityRef.of(entity)
            if ref is not None:
                repository.touch_sync_log(ref, task.endpoint, self._clock())
        self._run_hook(task, entity, result, Outcome.SUCCESS)

    def _on_failure(self, task: TaskTable, entity: Any | None, result: SyncResult) -> None:
        task.mark_failed(result.to_dict())
        self._run_hook(task, entity, result, Outcome.FAILED)

    def _run_hook(self, task: TaskTable, entity: Any | None, result: SyncResult, outcome: Outcome) -> None:
        # Owner deleted since a post or put task was created: nothing to hand over.
        if entity is None and HttpMethod(task.method) is not HttpMethod.DELETE:
            return
        hook = self.registry.get_hook(task.notifiable_type, task.endpoint, task.method, outcome)
        hook(entity, result)
