"""Endpoint configuration, HTTP methods and lifecycle events.

An :class:`EndpointConfig` describes one remote target a notifiable model
syncs to.  It is pure data: name, allowed methods, per-method options and
an optional skip predicate.

Lifecycle events map onto HTTP methods through ``LIFECYCLE_METHODS``::

    create  → post
    update  → put
    destroy → delete
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from notify_spine.errors import ConfigError


class HttpMethod(str, Enum):
    """HTTP verbs a task can be sent with."""

    POST = "post"
    GET = "get"
    PUT = "put"
    DELETE = "delete"


class LifecycleEvent(str, Enum):
    """Entity lifecycle events that can trigger a sync."""

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


LIFECYCLE_METHODS: Mapping[LifecycleEvent, HttpMethod] = MappingProxyType({
    LifecycleEvent.CREATE: HttpMethod.POST,
    LifecycleEvent.UPDATE: HttpMethod.PUT,
    LifecycleEvent.DESTROY: HttpMethod.DELETE,
})

SkipPredicate = str | Callable[[Any], Any]

SKIP_PREDICATE = "skip_predicate"


@dataclass(frozen=True)
class EndpointConfig:
    """Static description of one remote endpoint.

    Attributes:
        name: Route / path segment, unique per model.
        methods: Methods this endpoint accepts.  Events whose method is not
            listed are skipped for this endpoint.
        options: ``{method: {key: value}}`` flags.  ``skip_predicate`` here
            overrides the endpoint-wide predicate for that method.
        skip_predicate: Attribute name (or callable taking the entity) that
            vetoes the sync when truthy.
    """

    name: str
    methods: frozenset[HttpMethod] = frozenset(HttpMethod)
    options: Mapping[HttpMethod, Mapping[str, Any]] = field(default_factory=dict)
    skip_predicate: SkipPredicate | None = None

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ConfigError("Endpoint name must be a non-empty string")
        try:
            methods = frozenset(HttpMethod(m) for m in self.methods)
            options = {
                HttpMethod(method): MappingProxyType(dict(values))
                for method, values in self.options.items()
            }
        except ValueError as exc:
            raise ConfigError(
                f"Endpoint {self.name!r} has an unknown HTTP method", cause=exc
            ) from exc
        object.__setattr__(self, "methods", methods)
        object.__setattr__(self, "options", MappingProxyType(options))

    def allows(self, method: HttpMethod | str) -> bool:
        return HttpMethod(method) in self.methods

    def option(self, method: HttpMethod | str, key: str, default: Any = None) -> Any:
        return self.options.get(HttpMethod(method), {}).get(key, default)

    def skip_predicate_for(self, method: HttpMethod | str) -> SkipPredicate | None:
        """Method-level predicate if set, else the endpoint-wide one."""
        return self.option(method, SKIP_PREDICATE, self.skip_predicate)


def evaluate_predicate(predicate: SkipPredicate | None, entity: Any) -> bool:
    """Evaluate a skip predicate against *entity*.

    A string is looked up on the entity; if that attribute is callable it
    is called with no arguments.  Missing attributes count as false.
    """
    if predicate is None:
        return False
    if callable(predicate):
        return bool(predicate(entity))
    value = getattr(entity, predicate, None)
    if callable(value):
        value = value()
    return bool(value)


def build_endpoints(
    endpoints: Iterable[EndpointConfig | str] | Mapping[str, Mapping[str, Any]] | None,
    default_name: str,
) -> dict[str, EndpointConfig]:
    """Normalise the ``endpoints`` argument of a registration.

    Accepts ``None`` (one endpoint named *default_name*), an iterable of
    :class:`EndpointConfig` or names, or a mapping of name to keyword
    arguments for :class:`EndpointConfig`.
    """
    if endpoints is None:
        configs = [EndpointConfig(name=default_name)]
    elif isinstance(endpoints, Mapping):
        configs = [EndpointConfig(name=name, **dict(kwargs)) for name, kwargs in endpoints.items()]
    else:
        configs = [e if isinstance(e, EndpointConfig) else EndpointConfig(name=e) for e in endpoints]

    result: dict[str, EndpointConfig] = {}
    for config in configs:
        if config.name in result:
            raise ConfigError(f"Endpoint {config.name!r} is declared more than once")
        result[config.name] = config
    return result


# --------------------------------------------------------------------------- #
# Route names
# --------------------------------------------------------------------------- #


def pluralize(word: str) -> str:
    """English plural for a model name; covers the regular cases."""
    lower = word.lower()
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
        return word[:-1] + "ies"
    return word + "s"


def route_name_for(model: type) -> str:
    """Route segment for *model*.

    An explicit ``api_route_name`` class attribute wins (lowercased);
    otherwise the pluralized, lowercased class name is used.
    """
    explicit = getattr(model, "api_route_name", None)
    if explicit:
        return str(explicit).lower()
    return pluralize(model.__name__).lower()
