"""Change tracking: which registered fields must be sent to an endpoint.

A field is sent when its value changed since the entity was loaded, or
when the entity has never synced to that endpoint (no sync log row), in
which case every registered field is sent.

Change state comes from SQLAlchemy attribute history, which is only
meaningful before the flush completes.  :meth:`ChangeTracker.gather`
therefore runs in ``before_flush`` and caches one field list per endpoint
on the instance state; the dispatch decision after the flush reads the
cache through :meth:`ChangeTracker.changed_fields`.
"""

from __future__ import annotations

from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper
from sqlalchemy.orm.interfaces import MANYTOONE

from notify_spine.registry import NotifiableRegistry, get_default_registry
from notify_spine.repository import EntityRef, SyncRepository

_CHANGES_KEY = "notify_spine.changed_fields"


def get_value(entity: Any, path: str) -> Any:
    """Read a (possibly dotted) field path.

    A missing related entity along the way yields ``""`` instead of an
    error; a ``None`` final value is returned as is.
    """
    obj = entity
    for name in path.split("."):
        if obj is None or obj == "":
            return ""
        obj = getattr(obj, name)
    return obj


def field_changed(entity: Any, path: str) -> bool:
    """Whether the attribute at *path* has pending changes.

    A foreign key column also counts as changed when a many-to-one
    relationship over it was reassigned, since the column itself is only
    synchronized from the relationship at flush time.
    """
    *hops, attr = path.split(".")
    obj = entity
    for hop in hops:
        obj = getattr(obj, hop, None)
        if obj is None:
            return False
    try:
        state = inspect(obj)
    except NoInspectionAvailable:
        return False
    if attr not in state.attrs:
        return False
    if state.attrs[attr].history.has_changes():
        return True
    return any(
        state.attrs[key].history.has_changes()
        for key in _relationships_over(state.mapper, attr)
    )


def _relationships_over(mapper: Mapper[Any], attr: str) -> list[str]:
    """Many-to-one relationships whose local columns include column *attr*."""
    prop = mapper.attrs[attr]
    columns = set(getattr(prop, "columns", ()))
    if not columns:
        return []
    return [
        rel.key
        for rel in mapper.relationships
        if rel.direction is MANYTOONE and columns & set(rel.local_columns)
    ]


class ChangeTracker:
    """Computes per-endpoint changed fields for notifiable entities."""

    def __init__(self, repository: SyncRepository, registry: NotifiableRegistry | None = None) -> None:
        self.repository = repository
        self.registry = registry or repository.registry or get_default_registry()

    def must_sync(self, entity: Any, endpoint: str) -> bool:
        """True when the entity has never synced to *endpoint*."""
        ref = EntityRef.of(entity)
        if ref is None:
            return True
        return not self.repository.has_sync_log(ref, endpoint)

    def compute_changed_fields(self, entity: Any, endpoint: str) -> list[str]:
        spec = self.registry.spec_for(entity)
        # An autoflush here would clear the history being inspected.
        with self.repository.session.no_autoflush:
            forced = self.must_sync(entity, endpoint)
            return [f for f in spec.fields if forced or field_changed(entity, f)]

    def gather(self, entity: Any) -> dict[str, list[str]]:
        """Compute and cache changed fields for every endpoint of *entity*."""
        spec = self.registry.spec_for(entity)
        changes = {
            name: self.compute_changed_fields(entity, name)
            for name in spec.endpoints
        }
        inspect(entity).info[_CHANGES_KEY] = changes
        return changes

    def changed_fields(self, entity: Any, endpoint: str) -> list[str]:
        """Cached result of the last :meth:`gather`; empty if none ran."""
        changes = inspect(entity).info.get(_CHANGES_KEY)
        if not isinstance(changes, dict):
            return []
        return list(changes.get(endpoint, []))

    def has_changed_fields(self, entity: Any, endpoint: str) -> bool:
        return bool(self.changed_fields(entity, endpoint))

    def forget(self, entity: Any) -> None:
        inspect(entity).info.pop(_CHANGES_KEY, None)

    def resolve_identificators(self, entity: Any) -> dict[str, Any]:
        spec = self.registry.spec_for(entity)
        return {
            key: to_jsonable_python(get_value(entity, path))
            for key, path in spec.identificators.items()
        }
