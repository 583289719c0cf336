"""Process-wide wiring: settings → engine, transport, queue, dispatcher.

Producers call :func:`setup` once at startup; workers reach the same
dispatcher through :func:`get_dispatcher`.

Example::

    >>> from notify_spine import runtime
    >>> SessionLocal = runtime.setup()
    >>> with SessionLocal() as session:
    ...     session.add(vehicle)
    ...     session.commit()      # tasks enqueued here
"""

from __future__ import annotations

import importlib
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from notify_spine.address import RestAddressResolver
from notify_spine.config import Settings, get_settings, init_activation
from notify_spine.dispatcher import Dispatcher
from notify_spine.listeners import install_listeners
from notify_spine.logging import configure_logging, get_logger
from notify_spine.orm.session import NotifySession, create_notify_engine, notify_session_factory
from notify_spine.queues import get_queue
from notify_spine.retry import RetryPolicy, backoff_from_settings
from notify_spine.synchronizer import Synchronizer
from notify_spine.transport import HttpxTransport, Transport

logger = get_logger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[NotifySession] | None = None
_dispatcher: Dispatcher | None = None


def import_models(settings: Settings | None = None) -> list[str]:
    """Import ``NOTIFY_MODELS_MODULES`` so notifiable models register."""
    settings = settings or get_settings()
    for module in settings.models_modules:
        importlib.import_module(module)
    return list(settings.models_modules)


def get_engine(settings: Settings | None = None) -> Engine:
    global _engine
    if _engine is None:
        _engine = create_notify_engine((settings or get_settings()).database_url)
    return _engine


def get_session_factory(settings: Settings | None = None) -> sessionmaker[NotifySession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = notify_session_factory(get_engine(settings))
    return _session_factory


def build_transport(settings: Settings) -> HttpxTransport:
    headers = {"Accept": "application/json"}
    if settings.api_token:
        headers["Authorization"] = f"Bearer {settings.api_token}"
    return HttpxTransport(timeout=settings.api_timeout, headers=headers)


def build_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.max_attempts,
        backoff=backoff_from_settings(
            settings.retry_strategy,
            settings.retry_base_delay,
            settings.retry_max_delay,
        ),
    )


def build_dispatcher(
    settings: Settings | None = None,
    *,
    session_factory: Any = None,
    queue: Any = None,
    transport: Transport | None = None,
) -> Dispatcher:
    """Assemble a dispatcher from settings; any part can be supplied."""
    settings = settings or get_settings()
    synchronizer = Synchronizer(
        transport=transport or build_transport(settings),
        resolve_address=RestAddressResolver(settings.api_base_url),
    )
    return Dispatcher(
        session_factory=session_factory or get_session_factory(settings),
        queue=queue or get_queue(settings),
        synchronizer=synchronizer,
        policy=build_policy(settings),
    )


def get_dispatcher() -> Dispatcher:
    """The process dispatcher, built from settings on first use."""
    global _dispatcher
    if _dispatcher is None:
        settings = get_settings()
        import_models(settings)
        _dispatcher = build_dispatcher(settings)
        logger.info(
            "dispatcher_ready",
            backend=settings.backend_type,
            max_attempts=settings.max_attempts,
        )
    return _dispatcher


def set_dispatcher(dispatcher: Dispatcher | None) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def setup(
    settings: Settings | None = None,
    *,
    target: Any = None,
    configure_logs: bool = True,
) -> Any:
    """Configure logging and activation and install session listeners.

    *target* defaults to the runtime session factory, which is returned.
    """
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(
            level=settings.log_level,
            json_format=settings.log_format == "json",
        )
    active = init_activation(settings.active)
    target = target if target is not None else get_session_factory(settings)
    install_listeners(target)
    logger.info("notify_spine_setup", active=active, backend=settings.backend_type)
    return target


def reset_runtime() -> None:
    """Drop cached engine, session factory and dispatcher (for testing)."""
    global _engine, _session_factory, _dispatcher
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
    _dispatcher = None
