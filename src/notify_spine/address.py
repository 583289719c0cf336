"""Address resolution: route name + identificators → request URL."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import quote

from notify_spine.errors import ErrorContext, UnresolvedIdentifier

AddressResolver = Callable[[str, Mapping[str, Any]], str]


class RestAddressResolver:
    """``{base_url}/{route_name}/{first identificator value}``.

    The first identificator is the remote resource id.  An empty or ``None``
    value raises :class:`UnresolvedIdentifier`.
    """

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def __call__(self, route_name: str, identificators: Mapping[str, Any]) -> str:
        if not identificators:
            raise UnresolvedIdentifier("<none>", route_name)
        key, value = next(iter(identificators.items()))
        if value is None or value == "":
            raise UnresolvedIdentifier(
                key, route_name, context=ErrorContext(endpoint=route_name)
            )
        return f"{self.base_url}/{quote(route_name)}/{quote(str(value), safe='')}"
