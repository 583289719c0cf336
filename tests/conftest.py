"""
Shared pytest fixtures and configuration for notify-spine tests.

This module provides:
- Global state isolation (settings, registry, activation, runtime)
- A file-backed SQLite engine with every table created
- Session factory with sync listeners feeding a LocalQueue
- A scripted transport and a dispatcher wired to it

Usage:
    def test_create_syncs(session_factory, queue, dispatcher, transport):
        with session_factory() as session:
            session.add(Vehicle(id=1, vin="ABC"))
            session.commit()
        queue.drain(dispatcher.execute)
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from notify_spine.address import RestAddressResolver
from notify_spine.config import activation_override, reset_settings
from notify_spine.dispatcher import Dispatcher
from notify_spine.listeners import install_listeners
from notify_spine.orm import NotifyBase, create_notify_engine, notify_session_factory
from notify_spine.queues.local import LocalQueue
from notify_spine.registry import NotifiableRegistry, get_default_registry, reset_default_registry
from notify_spine.retry import ConstantBackoff, RetryPolicy
from notify_spine.runtime import reset_runtime
from notify_spine.synchronizer import Synchronizer
from tests._support import BASE_URL, FakeTransport
from tests._support.models import VEHICLE_FIELDS, Customer, Vehicle


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without an explicit marker as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_global_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Fresh settings, registry and runtime for every test; engine active."""
    for key in ("NOTIFY_ACTIVE", "NOTIFY_BACKEND_TYPE", "NOTIFY_DATABASE_URL"):
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    reset_default_registry()
    reset_runtime()
    with activation_override(True):
        yield
    reset_runtime()
    reset_default_registry()
    reset_settings()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'notify.db'}"


@pytest.fixture
def engine(database_url: str):
    engine = create_notify_engine(database_url)
    NotifyBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def registry() -> NotifiableRegistry:
    """Default registry with ``Vehicle`` and ``Customer`` registered."""
    registry = get_default_registry()
    registry.register(
        Vehicle,
        VEHICLE_FIELDS,
        {"id": "id"},
        skip_synchronize="dont_do_synchronize",
    )
    registry.register(
        Customer,
        ["name", "email"],
        {"id": "id"},
        {
            "clients": {},
            "crm": {"methods": ["post", "put"], "skip_predicate": "archived"},
        },
    )
    return registry


@pytest.fixture
def queue() -> LocalQueue:
    return LocalQueue()


@pytest.fixture
def session_factory(engine, registry: NotifiableRegistry, queue: LocalQueue):
    """``sessionmaker`` whose commits enqueue task ids on ``queue``."""
    factory = notify_session_factory(engine)
    listeners = install_listeners(factory, enqueue=queue.enqueue, registry=registry)
    yield factory
    listeners.remove(factory)


# =============================================================================
# Execution Fixtures
# =============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def synchronizer(transport: FakeTransport, registry: NotifiableRegistry) -> Synchronizer:
    return Synchronizer(transport, RestAddressResolver(BASE_URL), registry=registry)


@pytest.fixture
def dispatcher(session_factory, queue: LocalQueue, synchronizer: Synchronizer, registry) -> Dispatcher:
    return Dispatcher(
        session_factory,
        queue,
        synchronizer,
        policy=RetryPolicy(max_attempts=5, backoff=ConstantBackoff(delay=0.0)),
        registry=registry,
    )
