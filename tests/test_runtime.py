"""Tests for process wiring in ``notify_spine.runtime``."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from notify_spine import runtime
from notify_spine.config import Settings, is_active
from notify_spine.orm import notify_session_factory
from notify_spine.queues import CeleryQueue, LocalQueue
from notify_spine.retry import ConstantBackoff, ExponentialBackoff, LinearBackoff
from tests._support import BASE_URL, FakeTransport
from tests._support.models import Vehicle


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestBuilders:
    def test_transport_without_token(self):
        transport = runtime.build_transport(_settings())
        headers = transport._client.headers
        assert headers["Accept"] == "application/json"
        assert "Authorization" not in headers
        transport.close()

    def test_transport_with_token(self):
        transport = runtime.build_transport(_settings(api_token="s3cret", api_timeout=3.0))
        assert transport._client.headers["Authorization"] == "Bearer s3cret"
        assert transport._client.timeout.read == 3.0
        transport.close()

    @pytest.mark.parametrize(
        "strategy,backoff_type",
        [
            ("exponential", ExponentialBackoff),
            ("linear", LinearBackoff),
            ("constant", ConstantBackoff),
        ],
    )
    def test_policy(self, strategy, backoff_type):
        policy = runtime.build_policy(_settings(retry_strategy=strategy, max_attempts=7))
        assert policy.max_attempts == 7
        assert isinstance(policy.backoff, backoff_type)

    def test_dispatcher_uses_backend_from_settings(self, engine):
        dispatcher = runtime.build_dispatcher(
            _settings(backend_type="celery"),
            session_factory=notify_session_factory(engine),
            transport=FakeTransport(),
        )
        assert isinstance(dispatcher.queue, CeleryQueue)
        assert dispatcher.policy.max_attempts == 5

    def test_built_dispatcher_runs_tasks(self, session_factory, queue, registry):
        transport = FakeTransport()
        dispatcher = runtime.build_dispatcher(
            _settings(api_base_url=BASE_URL, retry_strategy="constant", retry_base_delay=0.0),
            session_factory=session_factory,
            queue=queue,
            transport=transport,
        )

        with session_factory() as session:
            session.add(Vehicle(id=1, vin="ABC", make="Ford"))
            session.commit()
        queue.drain(dispatcher.execute)

        assert transport.last.address == f"{BASE_URL}/vehicles/1"


class TestGlobals:
    def test_engine_and_session_factory_are_cached(self, database_url, monkeypatch):
        monkeypatch.setenv("NOTIFY_DATABASE_URL", database_url)
        engine = runtime.get_engine()
        assert runtime.get_engine() is engine
        assert runtime.get_session_factory() is runtime.get_session_factory()

        runtime.reset_runtime()
        assert runtime.get_engine() is not engine

    def test_import_models(self):
        settings = _settings(models_modules=["tests._support.models"])
        assert runtime.import_models(settings) == ["tests._support.models"]

    def test_get_dispatcher_is_cached(self, database_url, monkeypatch):
        monkeypatch.setenv("NOTIFY_DATABASE_URL", database_url)
        monkeypatch.setenv("NOTIFY_BACKEND_TYPE", "local")
        dispatcher = runtime.get_dispatcher()
        assert isinstance(dispatcher.queue, LocalQueue)
        assert runtime.get_dispatcher() is dispatcher

    def test_set_dispatcher(self):
        fake = MagicMock()
        runtime.set_dispatcher(fake)
        assert runtime.get_dispatcher() is fake


class TestSetup:
    def test_installs_listeners_on_target(self, engine, registry):
        fake = MagicMock()
        runtime.set_dispatcher(fake)
        factory = notify_session_factory(engine)

        assert runtime.setup(_settings(), target=factory, configure_logs=False) is factory

        with factory() as session:
            session.add(Vehicle(id=1, vin="ABC"))
            session.commit()
        fake.enqueue.assert_called_once()

    def test_inactive_setup_creates_nothing(self, engine, registry):
        fake = MagicMock()
        runtime.set_dispatcher(fake)
        factory = notify_session_factory(engine)

        runtime.setup(_settings(active=False), target=factory, configure_logs=False)
        assert is_active() is False

        with factory() as session:
            session.add(Vehicle(id=1, vin="ABC"))
            session.commit()
        fake.enqueue.assert_not_called()
