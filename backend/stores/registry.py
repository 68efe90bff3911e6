from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from common.settings import Settings, load_settings

from .contracts import ActivityStore, NotificationStore, TaskStore
from .memory_stores import (
    InMemoryActivityStore,
    InMemoryNotificationStore,
    InMemoryTaskStore,
)
from .mongo_stores import MongoActivityStore, MongoNotificationStore, MongoTaskStore


@dataclass
class StoreSet:
    tasks: TaskStore
    notifications: NotificationStore
    activities: ActivityStore
    mode: str = "prod"


def _build_prod(mode: str, settings: Settings) -> StoreSet:
    from pymongo import MongoClient

    client = MongoClient(
        settings.mongo_url,
        serverSelectionTimeoutMS=5000,
        tz_aware=True,
    )
    db = client[settings.db_name]
    return StoreSet(
        tasks=MongoTaskStore(db),
        notifications=MongoNotificationStore(db),
        activities=MongoActivityStore(db),
        mode=mode,
    )


def _build_demo(mode: str, settings: Settings) -> StoreSet:
    return StoreSet(
        tasks=InMemoryTaskStore.from_fixture(),
        notifications=InMemoryNotificationStore.from_fixture(),
        activities=InMemoryActivityStore(),
        mode=mode,
    )


def _build_empty(mode: str, settings: Settings) -> StoreSet:
    return StoreSet(
        tasks=InMemoryTaskStore(),
        notifications=InMemoryNotificationStore(),
        activities=InMemoryActivityStore(),
        mode=mode,
    )


_store_cache: Optional[StoreSet] = None


def load_stores(mode: Optional[str] = None) -> StoreSet:
    global _store_cache
    if _store_cache and mode is None:
        return _store_cache
    settings = load_settings()
    active_mode = (mode or settings.mode).lower()
    if active_mode == "demo":
        _store_cache = _build_demo(active_mode, settings)
    elif active_mode == "test":
        _store_cache = _build_empty(active_mode, settings)
    else:
        _store_cache = _build_prod(active_mode, settings)
    return _store_cache


def get_stores() -> StoreSet:
    return load_stores()


def reload_stores(mode: Optional[str] = None) -> StoreSet:
    global _store_cache
    _store_cache = None
    return load_stores(mode)
