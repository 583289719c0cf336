"""Retry policy for sync tasks: attempt bound plus backoff between attempts.

Example:
    >>> from notify_spine.retry import RetryPolicy, ExponentialBackoff
    >>>
    >>> policy = RetryPolicy(max_attempts=5, backoff=ExponentialBackoff(base_delay=15.0))
    >>> policy.should_retry(attempts=4)
    True
    >>> policy.should_retry(attempts=5)
    False
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

DEFAULT_MAX_ATTEMPTS = 5


class BackoffStrategy(ABC):
    """Abstract base for delays between attempts."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before the attempt that follows *attempt*.

        Args:
            attempt: One-based number of the attempt that just failed.
        """
        ...


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** (attempt - 1)), max_delay) + jitter
    """

    base_delay: float = 15.0
    max_delay: float = 900.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        delay = min(
            self.base_delay * (self.multiplier ** max(attempt - 1, 0)),
            self.max_delay,
        )

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay


@dataclass
class LinearBackoff(BackoffStrategy):
    """Delay = base_delay + increment * (attempt - 1), capped at max_delay."""

    base_delay: float = 15.0
    increment: float = 15.0
    max_delay: float = 900.0

    def next_delay(self, attempt: int) -> float:
        return min(
            self.base_delay + (self.increment * max(attempt - 1, 0)),
            self.max_delay,
        )


@dataclass
class ConstantBackoff(BackoffStrategy):
    """Constant delay between attempts."""

    delay: float = 15.0

    def next_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class RetryPolicy:
    """At most ``max_attempts`` executions per task, spaced by ``backoff``."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff: BackoffStrategy = field(default_factory=ExponentialBackoff)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def should_retry(self, attempts: int) -> bool:
        """Whether another attempt is allowed after *attempts* have run."""
        return attempts < self.max_attempts

    def is_exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_attempts

    def next_delay(self, attempts: int) -> float:
        return self.backoff.next_delay(attempts)


def backoff_from_settings(strategy: str, base_delay: float, max_delay: float) -> BackoffStrategy:
    if strategy == "exponential":
        return ExponentialBackoff(base_delay=base_delay, max_delay=max_delay)
    if strategy == "linear":
        return LinearBackoff(base_delay=base_delay, increment=base_delay, max_delay=max_delay)
    if strategy == "constant":
        return ConstantBackoff(delay=base_delay)
    raise ValueError(f"Unknown retry strategy: {strategy!r}")
