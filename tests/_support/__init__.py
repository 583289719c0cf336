"""
Test support utilities for notify-spine tests.

Helpers that don't fit as pytest fixtures but are shared across test
files: a scripted transport and response builders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from notify_spine.endpoints import HttpMethod
from notify_spine.transport import TransportResponse

BASE_URL = "http://api.test/v1"


def ok(body: Any = None, status_code: int = 200) -> TransportResponse:
    return TransportResponse(status_code=status_code, body=body if body is not None else {"ok": True})


def server_error(status_code: int = 500) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        body={"error": "boom"},
        error=f"HTTP {status_code}",
    )


@dataclass(frozen=True)
class SentRequest:
    address: str
    method: HttpMethod
    body: dict[str, Any]


@dataclass
class FakeTransport:
    """Records every request and answers from a script.

    Responses are consumed in order; once the script is empty every
    request gets ``default``.
    """

    script: list[TransportResponse] = field(default_factory=list)
    default: TransportResponse = field(default_factory=ok)
    calls: list[SentRequest] = field(default_factory=list)

    def send(self, address: str, method: HttpMethod, body: dict[str, Any]) -> TransportResponse:
        self.calls.append(SentRequest(address, HttpMethod(method), dict(body)))
        if self.script:
            return self.script.pop(0)
        return self.default

    def fail_with(self, response: TransportResponse | None = None) -> None:
        """Answer every following request with a failure."""
        self.script.clear()
        self.default = response or server_error()

    @property
    def last(self) -> SentRequest:
        return self.calls[-1]
