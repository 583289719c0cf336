"""Per-instance opt-out helpers for notifiable models."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager


class NotifiableMixin:
    """Adds the ``skip_api_notify`` switch to a mapped model.

    The flag is read when the session flushes, so it must still be set at
    flush time::

        with vehicle.api_notify_disabled():
            vehicle.make = "Audi"
            session.commit()
    """

    # Plain attribute, not a mapped column.
    skip_api_notify = False

    def disable_api_notify(self) -> None:
        self.skip_api_notify = True

    def enable_api_notify(self) -> None:
        self.skip_api_notify = False

    @contextmanager
    def api_notify_disabled(self) -> Iterator[None]:
        previous = self.skip_api_notify
        self.skip_api_notify = True
        try:
            yield
        finally:
            self.skip_api_notify = previous
