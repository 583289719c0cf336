"""Declarative base and mixins for notify-spine ORM models.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types.

Applications may declare their notifiable models on :class:`NotifyBase`
or on their own base; the listeners only need mapped instances.
"""

from __future__ import annotations

import datetime

from sqlalchemy import JSON, DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime.datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.datetime.now(datetime.UTC)


class NotifyBase(DeclarativeBase):
    """Shared declarative base for every notify-spine table.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``datetime.datetime`` → ``DateTime(timezone=True)``
    * ``dict``  → ``JSON``
    * ``list``  → ``JSON``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        datetime.datetime: DateTime(timezone=True),
        dict: JSON,
        list: JSON,
    }


class TimestampMixin:
    """Mixin that adds ``created_at`` and ``updated_at``.

    Python-side defaults so the same models work on SQLite and PostgreSQL.
    """

    created_at: Mapped[datetime.datetime] = mapped_column(
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
    )
