"""Notifiable registry: which models sync, where, and who hears the outcome.

ARCHITECTURE
────────────
::

    NotifiableRegistry
      ├── .register(model, fields, identificators, endpoints, ...)  ─ NotifySpec
      ├── .spec_for(entity_or_model)                                ─ lookup
      ├── .model_for(type_name)                                     ─ worker-side load
      ├── .register_hook(model, endpoint, method, outcome, handler)
      └── .get_hook(model, endpoint, method, outcome)               ─ no-op default

    Decorators (use the default registry unless one is passed):
      @notifiable(fields=[...], identificators={...}, endpoints=[...])
      @on_sync_success(Model, "vehicles", "post")
      @on_sync_failure(Model, "vehicles", "put")

    get_default_registry()     ─ module-level singleton
    reset_default_registry()   ─ clear for testing

Hooks are called as ``handler(entity, result)`` where *result* is the
:class:`~notify_spine.synchronizer.SyncResult` of the attempt.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from notify_spine.endpoints import (
    EndpointConfig,
    HttpMethod,
    SkipPredicate,
    build_endpoints,
    route_name_for,
)
from notify_spine.errors import ConfigError, NotifiableNotRegistered

Hook = Callable[[Any, Any], Any]


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


def _noop_hook(entity: Any, result: Any) -> None:
    return None


@dataclass(frozen=True)
class NotifySpec:
    """Registration record for one notifiable model."""

    model: type
    fields: tuple[str, ...]
    identificators: Mapping[str, str]
    endpoints: Mapping[str, EndpointConfig]
    route_name: str
    skip_synchronize: SkipPredicate | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def type_name(self) -> str:
        return self.model.__name__

    def endpoint(self, name: str) -> EndpointConfig:
        try:
            return self.endpoints[name]
        except KeyError:
            raise ConfigError(
                f"{self.type_name} has no endpoint {name!r}; declared: {sorted(self.endpoints)}"
            ) from None


class NotifiableRegistry:
    """Injectable registry of notifiable models and their outcome hooks."""

    def __init__(self) -> None:
        self._specs: dict[str, NotifySpec] = {}
        self._hooks: dict[tuple[str, str, HttpMethod, Outcome], Hook] = {}
        self._lock = threading.Lock()

    def register(
        self,
        model: type,
        fields: Sequence[str],
        identificators: Mapping[str, str],
        endpoints: Iterable[EndpointConfig | str] | Mapping[str, Mapping[str, Any]] | None = None,
        *,
        route_name: str | None = None,
        skip_synchronize: SkipPredicate | None = None,
        **options: Any,
    ) -> NotifySpec:
        """Register *model* as notifiable.

        Args:
            model: Mapped class with a single-column primary key.
            fields: Trackable field paths, in payload order.  One dotted hop
                into a related entity is allowed (``"dealer.title"``).
            identificators: ``{key: field_path}`` used to address the remote
                resource; the first key is the resource id.
            endpoints: Endpoint configs; defaults to one endpoint named after
                the model's route name.
            route_name: Overrides :func:`route_name_for`.
            skip_synchronize: Model-wide skip predicate, used by endpoints
                that do not declare their own.
            **options: Extra flags kept on the spec.
        """
        if isinstance(fields, str):
            raise ConfigError("fields must be a sequence of field paths, not a string")
        if not identificators:
            raise ConfigError(f"{model.__name__} must declare at least one identificator")
        for path in [*fields, *identificators.values()]:
            if path.count(".") > 1:
                raise ConfigError(f"Field path {path!r} may traverse at most one related entity")

        route = route_name.lower() if route_name else route_name_for(model)
        spec = NotifySpec(
            model=model,
            fields=tuple(fields),
            identificators=dict(identificators),
            endpoints=build_endpoints(endpoints, route),
            route_name=route,
            skip_synchronize=skip_synchronize,
            options=dict(options),
        )
        with self._lock:
            existing = self._specs.get(model.__name__)
            if existing is not None and existing.model is not model:
                raise ConfigError(f"Another model is already registered as {model.__name__!r}")
            self._specs[model.__name__] = spec
        return spec

    def is_notifiable(self, obj: Any) -> bool:
        model = obj if isinstance(obj, type) else type(obj)
        spec = self._specs.get(model.__name__)
        return spec is not None and spec.model is model

    def spec_for(self, obj: Any) -> NotifySpec:
        """Spec for an instance or model class."""
        model = obj if isinstance(obj, type) else type(obj)
        spec = self._specs.get(model.__name__)
        if spec is None or spec.model is not model:
            raise NotifiableNotRegistered(model.__name__)
        return spec

    def model_for(self, type_name: str) -> type:
        spec = self._specs.get(type_name)
        if spec is None:
            raise NotifiableNotRegistered(type_name)
        return spec.model

    def specs(self) -> list[NotifySpec]:
        return list(self._specs.values())

    # ------------------------------------------------------------------ #
    # Hooks
    # ------------------------------------------------------------------ #

    def register_hook(
        self,
        model: type,
        endpoint: str,
        method: HttpMethod | str,
        outcome: Outcome | str,
        handler: Hook,
    ) -> None:
        """Register *handler* to run as ``handler(entity, result)``.

        Delete tasks run after the row is gone, so ``delete`` hooks receive
        ``entity=None``.
        """
        spec = self.spec_for(model)
        spec.endpoint(endpoint)
        key = (spec.type_name, endpoint, HttpMethod(method), Outcome(outcome))
        with self._lock:
            self._hooks[key] = handler

    def get_hook(
        self,
        model: type | str,
        endpoint: str,
        method: HttpMethod | str,
        outcome: Outcome | str,
    ) -> Hook:
        type_name = model if isinstance(model, str) else model.__name__
        key = (type_name, endpoint, HttpMethod(method), Outcome(outcome))
        return self._hooks.get(key, _noop_hook)

    def clear(self) -> None:
        with self._lock:
            self._specs.clear()
            self._hooks.clear()


# --------------------------------------------------------------------------- #
# Default registry + decorators
# --------------------------------------------------------------------------- #

_default_registry: NotifiableRegistry | None = None
_default_lock = threading.Lock()


def get_default_registry() -> NotifiableRegistry:
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = NotifiableRegistry()
        return _default_registry


def reset_default_registry() -> None:
    """Drop every registration (for testing)."""
    global _default_registry
    with _default_lock:
        _default_registry = None


def notifiable(
    fields: Sequence[str],
    identificators: Mapping[str, str],
    endpoints: Iterable[EndpointConfig | str] | Mapping[str, Mapping[str, Any]] | None = None,
    *,
    registry: NotifiableRegistry | None = None,
    **kwargs: Any,
) -> Callable[[type], type]:
    """Class decorator registering a mapped model as notifiable.

    Example:
        >>> @notifiable(
        ...     ["no", "vin", "make", "dealer.title"],
        ...     {"id": "id"},
        ...     skip_synchronize="dont_do_synchronize",
        ... )
        ... class Vehicle(NotifiableMixin, Base):
        ...     ...
    """

    def decorator(model: type) -> type:
        (registry or get_default_registry()).register(
            model, fields, identificators, endpoints, **kwargs
        )
        return model

    return decorator


def _hook_decorator(outcome: Outcome):
    def factory(
        model: type,
        endpoint: str,
        method: HttpMethod | str,
        *,
        registry: NotifiableRegistry | None = None,
    ) -> Callable[[Hook], Hook]:
        def decorator(handler: Hook) -> Hook:
            (registry or get_default_registry()).register_hook(
                model, endpoint, method, outcome, handler
            )
            return handler

        return decorator

    return factory


on_sync_success = _hook_decorator(Outcome.SUCCESS)
on_sync_failure = _hook_decorator(Outcome.FAILED)
