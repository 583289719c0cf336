"""HTTP transport for outbound sync requests.

The engine only needs ``send(address, method, body) -> TransportResponse``.
Network errors, timeouts and non-2xx statuses all come back as a response
with ``error`` set; nothing is raised, so a failed call is an ordinary
failed attempt for the dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from notify_spine.endpoints import HttpMethod
from notify_spine.errors import ErrorContext, TransportFailure
from notify_spine.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Normalized outcome of one remote call."""

    status_code: int | None
    body: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )

    def raise_for_error(self, url: str | None = None) -> None:
        if not self.ok:
            raise TransportFailure(
                self.error or f"HTTP {self.status_code}",
                context=ErrorContext(url=url, http_status=self.status_code),
            )


class Transport(Protocol):
    def send(self, address: str, method: HttpMethod, body: dict[str, Any]) -> TransportResponse:
        ...


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxTransport:
    """``httpx.Client``-backed transport.

    GET and DELETE carry the body as query parameters; POST and PUT send it
    as JSON.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, headers=headers)

    def send(self, address: str, method: HttpMethod, body: dict[str, Any]) -> TransportResponse:
        method = HttpMethod(method)
        try:
            if method in (HttpMethod.GET, HttpMethod.DELETE):
                response = self._client.request(method.value.upper(), address, params=body or None)
            else:
                response = self._client.request(method.value.upper(), address, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("transport_timeout", url=address, method=method.value)
            return TransportResponse(status_code=None, error=f"Timeout: {exc}")
        except httpx.HTTPError as exc:
            logger.warning("transport_error", url=address, method=method.value, error=str(exc))
            return TransportResponse(status_code=None, error=f"{type(exc).__name__}: {exc}")

        payload = _decode(response)
        if response.is_success:
            return TransportResponse(status_code=response.status_code, body=payload)
        return TransportResponse(
            status_code=response.status_code,
            body=payload,
            error=f"HTTP {response.status_code}",
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *args) -> None:
        self.close()
