"""End-to-end tests: session commits → tasks → queue → remote calls."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from notify_spine.config import activation_override
from notify_spine.listeners import install_listeners
from notify_spine.orm import SyncLogTable, TaskStatus, TaskTable, notify_session_factory
from notify_spine.registry import on_sync_success
from notify_spine.repository import EntityRef, SyncRepository
from tests._support import BASE_URL, ok
from tests._support.models import VEHICLE_FIELDS, Customer, Dealer, Vehicle

pytestmark = pytest.mark.integration


def _tasks(session_factory):
    with session_factory() as session:
        return list(session.scalars(select(TaskTable).order_by(TaskTable.created_at)))


def _sync_logs(session_factory):
    with session_factory() as session:
        return list(session.scalars(select(SyncLogTable)))


@pytest.fixture
def synced_vehicle(session_factory, queue, dispatcher, transport):
    """Vehicle 1 created and synced once, with the queue drained."""
    with session_factory() as session:
        session.add(Vehicle(id=1, vin="ABC", make="Ford"))
        session.commit()
    queue.drain(dispatcher.execute)
    transport.calls.clear()
    return 1


class TestCreateScenario:
    def test_create_enqueues_post_task(self, session_factory, queue):
        with session_factory() as session:
            session.add(Vehicle(id=1, vin="ABC", make="Ford"))
            session.commit()

        tasks = _tasks(session_factory)
        assert len(tasks) == 1
        task = tasks[0]
        assert task.method == "post"
        assert task.fields_updated == VEHICLE_FIELDS
        assert task.identificators == {"id": 1}
        assert queue.pending() == [task.id]

    def test_sync_creates_log_and_runs_success_hook(
        self, session_factory, queue, dispatcher, transport, registry
    ):
        received = []

        @on_sync_success(Vehicle, "vehicles", "post")
        def remember(entity, result):
            received.append((entity.id, result.body))

        transport.default = ok({"remote_id": 99}, status_code=201)

        with session_factory() as session:
            session.add(Vehicle(id=1, vin="ABC", make="Ford"))
            session.commit()
        assert queue.drain(dispatcher.execute) == 1

        request = transport.last
        assert request.address == f"{BASE_URL}/vehicles/1"
        assert request.method.value == "post"
        assert request.body == {
            "no": None,
            "vin": "ABC",
            "make": "Ford",
            "dealer_id": None,
            "dealer.title": "",
            "vehicle_type.title": "",
        }
        assert received == [(1, {"remote_id": 99})]

        logs = _sync_logs(session_factory)
        assert [(log.logable_type, log.logable_id, log.endpoint) for log in logs] == [
            ("Vehicle", "1", "vehicles")
        ]
        task = _tasks(session_factory)[0]
        assert task.task_status is TaskStatus.DONE
        assert task.attempts == 1
        assert task.response["status_code"] == 201

    def test_related_values_in_payload(self, session_factory, queue, dispatcher, transport):
        with session_factory() as session:
            dealer = Dealer(id=10, title="Main Street Motors")
            session.add_all([dealer, Vehicle(id=1, vin="ABC", dealer=dealer)])
            session.commit()
        queue.drain(dispatcher.execute)

        assert transport.last.body["dealer_id"] == 10
        assert transport.last.body["dealer.title"] == "Main Street Motors"


class TestUpdateScenario:
    def test_second_update_sends_only_make(self, session_factory, queue, dispatcher, transport, synced_vehicle):
        with session_factory() as session:
            vehicle = session.get(Vehicle, synced_vehicle)
            vehicle.make = "Audi"
            session.commit()

        task = _tasks(session_factory)[-1]
        assert task.method == "put"
        assert task.fields_updated == ["make"]

        queue.drain(dispatcher.execute)
        assert transport.last.method.value == "put"
        assert transport.last.body == {"make": "Audi"}

    def test_no_op_update_creates_nothing(self, session_factory, queue, synced_vehicle):
        with session_factory() as session:
            vehicle = session.get(Vehicle, synced_vehicle)
            vehicle.make = "Ford"
            session.commit()

        assert len(_tasks(session_factory)) == 1
        assert queue.pending() == []

    def test_skip_predicate_creates_nothing(self, session_factory, queue, synced_vehicle):
        with session_factory() as session:
            vehicle = session.get(Vehicle, synced_vehicle)
            vehicle.dont_do_synchronize = True
            vehicle.make = "Audi"
            session.commit()

        assert len(_tasks(session_factory)) == 1
        assert queue.pending() == []

    def test_skip_api_notify_creates_nothing(self, session_factory, queue, synced_vehicle):
        with session_factory() as session:
            vehicle = session.get(Vehicle, synced_vehicle)
            with vehicle.api_notify_disabled():
                vehicle.make = "Audi"
                session.commit()
            assert vehicle.skip_api_notify is False

        assert len(_tasks(session_factory)) == 1

    def test_live_values_with_snapshot_names(self, session_factory, queue, dispatcher, transport, synced_vehicle):
        with session_factory() as session:
            vehicle = session.get(Vehicle, synced_vehicle)
            vehicle.make = "Audi"
            session.commit()
        with session_factory() as session:
            vehicle = session.get(Vehicle, synced_vehicle)
            vehicle.make = "BMW"
            session.commit()

        queue.drain(dispatcher.execute)

        # Both tasks carry the name "make"; both send the value at execution time.
        assert [call.body for call in transport.calls] == [{"make": "BMW"}, {"make": "BMW"}]


class TestDestroyScenario:
    def test_destroy_sends_delete_and_removes_logs(
        self, session_factory, queue, dispatcher, transport, synced_vehicle
    ):
        assert len(_sync_logs(session_factory)) == 1

        with session_factory() as session:
            session.delete(session.get(Vehicle, synced_vehicle))
            session.commit()

        task = _tasks(session_factory)[-1]
        assert task.method == "delete"
        assert task.fields_updated == []
        assert _sync_logs(session_factory) == []

        queue.drain(dispatcher.execute)
        assert transport.last.method.value == "delete"
        assert transport.last.address == f"{BASE_URL}/vehicles/1"
        assert transport.last.body == {}
        # The owner is gone, so no new log is written.
        assert _sync_logs(session_factory) == []

    def test_destroy_of_never_synced_entity(self, session_factory, queue):
        with session_factory() as session:
            session.add(Vehicle(id=2, vin="NEW"))
            session.commit()
        with session_factory() as session:
            session.delete(session.get(Vehicle, 2))
            session.commit()

        assert [t.method for t in _tasks(session_factory)] == ["post", "delete"]


class TestTransactions:
    def test_rollback_enqueues_nothing(self, session_factory, queue):
        with session_factory() as session:
            session.add(Vehicle(id=1, vin="ABC"))
            session.flush()
            session.rollback()

        assert queue.pending() == []
        assert _tasks(session_factory) == []

    def test_inactive_engine(self, session_factory, queue):
        with activation_override(False):
            with session_factory() as session:
                session.add(Vehicle(id=1, vin="ABC"))
                session.commit()
        assert _tasks(session_factory) == []
        assert queue.pending() == []

    def test_non_notifiable_models_ignored(self, session_factory, queue):
        with session_factory() as session:
            session.add(Dealer(id=1, title="Main"))
            session.commit()
        assert _tasks(session_factory) == []

    def test_fan_out_to_every_endpoint(self, session_factory, queue):
        with session_factory() as session:
            session.add(Customer(id=5, name="Ada"))
            session.commit()
        assert sorted(t.endpoint for t in _tasks(session_factory)) == ["clients", "crm"]
        assert len(queue.pending()) == 2

    def test_enqueue_failure_leaves_task_pending(self, engine, registry):
        def broken(task_id):
            raise ConnectionError("broker down")

        factory = notify_session_factory(engine)
        listeners = install_listeners(factory, enqueue=broken, registry=registry)
        try:
            with factory() as session:
                session.add(Vehicle(id=1, vin="ABC"))
                session.commit()
        finally:
            listeners.remove(factory)

        with factory() as session:
            tasks = SyncRepository(session, registry).tasks_for(EntityRef("Vehicle", "1"))
            assert [t.task_status for t in tasks] == [TaskStatus.PENDING]


class TestRelationships:
    def test_reassigned_dealer_sends_dealer_id(self, session_factory, queue, dispatcher, transport):
        with session_factory() as session:
            session.add_all([Dealer(id=1, title="North"), Dealer(id=2, title="South")])
            session.add(Vehicle(id=1, vin="ABC", dealer_id=1))
            session.commit()
        queue.drain(dispatcher.execute)

        with session_factory() as session:
            vehicle = session.get(Vehicle, 1)
            vehicle.dealer = session.get(Dealer, 2)
            session.commit()
            assert vehicle.dealer_id == 2

        task = _tasks(session_factory)[-1]
        assert task.method == "put"
        assert task.fields_updated == ["dealer_id"]

        queue.drain(dispatcher.execute)
        assert transport.last.body == {"dealer_id": 2}


class TestHooksInsideWorker:
    def test_hook_saving_entity_creates_no_extra_task(self, session_factory, queue, dispatcher, registry):
        @on_sync_success(Customer, "clients", "post")
        def archive(customer, result):
            customer.archived = True

        with session_factory() as session:
            session.add(Customer(id=5, name="Ada", email="ada@example.com"))
            session.commit()
        queue.drain(dispatcher.execute)

        assert sorted((t.endpoint, t.method) for t in _tasks(session_factory)) == [
            ("clients", "post"),
            ("crm", "post"),
        ]
        with session_factory() as session:
            assert session.get(Customer, 5).archived is True

    def test_delete_hook_runs_without_entity(self, session_factory, queue, dispatcher, transport, synced_vehicle):
        calls = []

        @on_sync_success(Vehicle, "vehicles", "delete")
        def forget_remote(entity, result):
            calls.append((entity, result.success))

        with session_factory() as session:
            session.delete(session.get(Vehicle, synced_vehicle))
            session.commit()
        queue.drain(dispatcher.execute)

        assert transport.last.method.value == "delete"
        assert calls == [(None, True)]
