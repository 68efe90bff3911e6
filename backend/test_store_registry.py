import pytest

from common.settings import load_settings
from delivery.models import TaskStatus
from stores import registry
from stores.memory_stores import (
    InMemoryActivityStore,
    InMemoryNotificationStore,
    InMemoryTaskStore,
)
from stores.registry import get_stores, reload_stores


@pytest.fixture(autouse=True)
def _demo_mode(monkeypatch):
    monkeypatch.setenv("DELIVERY_MODE", "demo")
    reload_stores()
    yield
    reload_stores("test")


def test_demo_mode_uses_fixture_stores():
    stores = get_stores()
    assert stores.mode == "demo"
    assert isinstance(stores.tasks, InMemoryTaskStore)
    assert isinstance(stores.notifications, InMemoryNotificationStore)
    assert isinstance(stores.activities, InMemoryActivityStore)


def test_demo_fixture_contents():
    stores = get_stores()
    tasks = stores.tasks.list_for_manager("manager-1")
    assert [t.task_id for t in tasks] == ["task-1001", "task-1002", "task-1003"]

    in_transit = stores.tasks.get("task-1002")
    assert in_transit.status == TaskStatus.IN_TRANSIT
    assert in_transit.estimated_delivery_time > in_transit.updated_at

    assert stores.notifications.count_unread("manager-1") == 2
    read = stores.notifications.get("ntf-3")
    assert read.is_read is True
    assert read.read_at is not None


def test_stores_cached_until_reload():
    first = get_stores()
    assert get_stores() is first
    assert reload_stores() is not first


def test_store_returns_copies():
    stores = get_stores()
    task = stores.tasks.get("task-1001")
    task.status = TaskStatus.CANCELLED
    assert stores.tasks.get("task-1001").status == TaskStatus.ACCEPTED


def test_test_mode_starts_empty(monkeypatch):
    monkeypatch.setenv("DELIVERY_MODE", "test")
    stores = reload_stores()
    assert stores.mode == "test"
    assert stores.tasks.list_for_manager("manager-1") == []
    assert stores.notifications.count_unread("manager-1") == 0


def test_prod_mode_switch(monkeypatch):
    built = []
    monkeypatch.setattr(
        registry,
        "_build_prod",
        lambda mode, settings: built.append((mode, settings.mongo_url, settings.db_name)) or "mongo-stores",
    )
    monkeypatch.setenv("DELIVERY_MODE", "prod")
    monkeypatch.setenv("MONGO_URL", "mongodb://db.internal:27017")
    monkeypatch.setenv("DB_NAME", "delivery_prod")
    assert reload_stores() == "mongo-stores"
    assert built == [("prod", "mongodb://db.internal:27017", "delivery_prod")]


def test_mode_follows_settings(monkeypatch):
    monkeypatch.setenv("DELIVERY_MODE", "Test")
    assert reload_stores().mode == load_settings().mode == "test"
