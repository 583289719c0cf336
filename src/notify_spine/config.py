"""Configuration management using Pydantic Settings.

Settings are read from ``NOTIFY_*`` environment variables and an optional
``.env`` file.  The activation flag that gates the whole engine is kept as
process-wide state: initialise it once at startup with
:func:`init_activation`, read it with :func:`is_active`, and flip it in
tests with :func:`activation_override`.

Example::

    >>> from notify_spine.config import get_settings, init_activation
    >>> settings = get_settings()
    >>> init_activation(settings.active)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Engine
    active: bool = True

    # Database
    database_url: str = "sqlite:///notify_spine.db"

    # Backend
    backend_type: Literal["local", "celery"] = "celery"

    # Redis / Celery
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str | None = None  # falls back to redis_url
    celery_task_default_queue: str = "notify_spine"

    # Remote API
    api_base_url: str = "http://localhost:3000/api"
    api_timeout: float = 10.0
    api_token: str | None = None

    # Retry
    max_attempts: int = Field(default=5, ge=1)
    retry_strategy: Literal["exponential", "linear", "constant"] = "exponential"
    retry_base_delay: float = 15.0
    retry_max_delay: float = 900.0

    # Modules that register notifiable models (imported by workers)
    models_modules: list[str] = Field(default_factory=list)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None


# --------------------------------------------------------------------------- #
# Activation flag
# --------------------------------------------------------------------------- #

_active: bool | None = None


def init_activation(active: bool | None = None) -> bool:
    """Set the process-wide activation flag.

    Called once at startup.  When *active* is ``None`` the value comes from
    ``Settings.active``.
    """
    global _active
    _active = get_settings().active if active is None else bool(active)
    return _active


def is_active() -> bool:
    """Return whether synchronization runs at all in this process."""
    if _active is None:
        return init_activation()
    return _active


@contextmanager
def activation_override(active: bool) -> Iterator[None]:
    """Temporarily force the activation flag (for tests)."""
    global _active
    previous = _active
    _active = bool(active)
    try:
        yield
    finally:
        _active = previous
