"""
Structured error types for notify-spine.

Every error carries a category, a retryable flag, an :class:`ErrorContext`
and an optional chained cause, so exhaustion alerts and logs can be routed
without parsing messages.

Hierarchy::

    NotifyError
      ├── ConfigError              (CONFIG)
      │     └── NotifiableNotRegistered
      ├── TransportFailure         (NETWORK, retryable)
      ├── UnresolvedIdentifier     (VALIDATION)
      ├── TaskNotFound             (SYNC)
      └── ExhaustedSynchronization (SYNC)

Skipped syncs are not errors and have no type here.

Usage::

    try:
        address = resolver(task.endpoint, task.identificators)
    except UnresolvedIdentifier as exc:
        log.warning("identifier_unresolved", **exc.to_dict())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    SYNC = "SYNC"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging and alerting."""

    task_id: str | None = None
    endpoint: str | None = None
    method: str | None = None
    notifiable_type: str | None = None
    notifiable_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["task_id", "endpoint", "method", "notifiable_type",
                    "notifiable_id", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class NotifyError(Exception):
    """Base exception for all notify-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can
    be overridden per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> NotifyError:
        """Add context fields fluently; unknown keys go to ``metadata``."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ConfigError(NotifyError):
    """Invalid registration or endpoint configuration."""

    default_category = ErrorCategory.CONFIG


class NotifiableNotRegistered(ConfigError):
    """A model or type name was looked up that never registered."""

    def __init__(self, name: str, **kwargs: Any):
        self.name = name
        super().__init__(f"{name} is not registered as notifiable", **kwargs)


class TransportFailure(NotifyError):
    """The remote call failed: network error, timeout, or non-2xx status."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class UnresolvedIdentifier(NotifyError):
    """An identificator resolved to an empty value, so no address exists."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, key: str, route_name: str, **kwargs: Any):
        self.key = key
        self.route_name = route_name
        super().__init__(
            f"Identificator {key!r} for route {route_name!r} resolved to an empty value",
            **kwargs,
        )


class ExhaustedSynchronization(NotifyError):
    """A task failed on its final permitted attempt.

    This is the only failure surfaced outside the dispatcher.  The task's
    last stored response is attached as ``response``.
    """

    default_category = ErrorCategory.SYNC

    def __init__(
        self,
        task_id: str,
        attempts: int,
        response: dict[str, Any] | None,
        **kwargs: Any,
    ):
        self.task_id = task_id
        self.attempts = attempts
        self.response = response
        super().__init__(
            f"Task {task_id} failed after {attempts} attempts: {response}",
            **kwargs,
        )
        self.context.task_id = task_id


class TaskNotFound(NotifyError):
    """No task row exists for the given id."""

    default_category = ErrorCategory.SYNC

    def __init__(self, task_id: str, **kwargs: Any):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found", **kwargs)
        self.context.task_id = task_id
