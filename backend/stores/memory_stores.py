from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

from common.timestamps import utcnow
from delivery.models import DeliveryTask, EtaActivity, TaskStatus
from notifications.models import Notification, NotificationType

from .contracts import ActivityStore, NotificationStore, TaskStore

FIXTURES_ROOT = Path(__file__).parent.parent / "fixtures" / "demo"


class _FixtureLoader:
    def __init__(self, fixture_name: str):
        self.path = FIXTURES_ROOT / fixture_name / "data.json"
        with self.path.open("r", encoding="utf-8") as f:
            self.data = json.load(f)


def _resolve_offsets(entry: dict, now: datetime) -> dict:
    """Turn relative fixture fields (*_hours_ago / *_hours_ahead) into timestamps."""
    doc = dict(entry)
    for key in list(doc):
        if key.endswith("_hours_ago"):
            doc[key[: -len("_hours_ago")]] = now - timedelta(hours=doc.pop(key))
        elif key.endswith("_hours_ahead"):
            doc[key[: -len("_hours_ahead")]] = now + timedelta(hours=doc.pop(key))
    return doc


class InMemoryTaskStore(TaskStore):
    def __init__(self, tasks: Optional[List[DeliveryTask]] = None) -> None:
        self._lock = threading.Lock()
        self._tasks: Dict[str, DeliveryTask] = {}
        for task in tasks or []:
            self._tasks[task.task_id] = task

    @classmethod
    def from_fixture(cls) -> "InMemoryTaskStore":
        loader = _FixtureLoader("tasks")
        now = utcnow()
        return cls([
            DeliveryTask.from_doc(_resolve_offsets(entry, now))
            for entry in loader.data.get("tasks", [])
        ])

    def get(self, task_id: str) -> Optional[DeliveryTask]:
        with self._lock:
            task = self._tasks.get(task_id)
            return DeliveryTask.from_doc(task.to_doc()) if task else None

    def find_by_order(self, order_id: str) -> Optional[DeliveryTask]:
        with self._lock:
            matches = [t for t in self._tasks.values() if t.order_id == order_id]
        if not matches:
            return None
        latest = max(matches, key=lambda t: t.created_at)
        return DeliveryTask.from_doc(latest.to_doc())

    def list_for_manager(
        self, manager_id: str, status: Optional[TaskStatus] = None
    ) -> List[DeliveryTask]:
        with self._lock:
            tasks = [
                t for t in self._tasks.values()
                if t.assigned_to == manager_id and (status is None or t.status == status)
            ]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return [DeliveryTask.from_doc(t.to_doc()) for t in tasks]

    def save(self, task: DeliveryTask) -> None:
        with self._lock:
            self._tasks[task.task_id] = DeliveryTask.from_doc(task.to_doc())


class InMemoryNotificationStore(NotificationStore):
    def __init__(self, notifications: Optional[List[Notification]] = None) -> None:
        self._lock = threading.Lock()
        self._items: Dict[str, Notification] = {}
        for notification in notifications or []:
            self._items[notification.notification_id] = notification

    @classmethod
    def from_fixture(cls) -> "InMemoryNotificationStore":
        loader = _FixtureLoader("notifications")
        now = utcnow()
        return cls([
            Notification.from_doc(_resolve_offsets(entry, now))
            for entry in loader.data.get("notifications", [])
        ])

    def add(self, notification: Notification) -> None:
        with self._lock:
            if notification.notification_id in self._items:
                raise ValueError(f"Duplicate notification id {notification.notification_id}")
            self._items[notification.notification_id] = notification

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._items.get(notification_id)

    def save(self, notification: Notification) -> None:
        with self._lock:
            self._items[notification.notification_id] = notification

    def list_for_recipient(
        self,
        recipient_id: str,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Notification]:
        with self._lock:
            items = [
                n for n in self._items.values()
                if n.recipient_id == recipient_id
                and (is_read is None or n.is_read == is_read)
                and (notification_type is None or n.notification_type == notification_type)
            ]
        items.sort(key=lambda n: n.created_at, reverse=True)
        items = items[offset:]
        if limit is not None:
            items = items[:limit]
        return items

    def count_unread(self, recipient_id: str) -> int:
        with self._lock:
            return sum(
                1 for n in self._items.values()
                if n.recipient_id == recipient_id and not n.is_read
            )

    def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        changed = 0
        with self._lock:
            for key, n in self._items.items():
                if n.recipient_id == recipient_id and not n.is_read:
                    self._items[key] = n.mark_read(read_at)
                    changed += 1
        return changed

    def delete(self, notification_id: str) -> bool:
        with self._lock:
            return self._items.pop(notification_id, None) is not None

    def delete_for_recipient(self, recipient_id: str) -> int:
        with self._lock:
            doomed = [k for k, n in self._items.items() if n.recipient_id == recipient_id]
            for key in doomed:
                del self._items[key]
        return len(doomed)

    def delete_read_before(self, cutoff: datetime) -> int:
        with self._lock:
            doomed = [
                k for k, n in self._items.items()
                if n.is_read and n.read_at is not None and n.read_at < cutoff
            ]
            for key in doomed:
                del self._items[key]
        return len(doomed)


class InMemoryActivityStore(ActivityStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._eta: List[EtaActivity] = []

    def add_eta_activity(self, activity: EtaActivity) -> None:
        with self._lock:
            self._eta.append(activity)

    def list_eta_activities(self, order_id: str) -> List[EtaActivity]:
        with self._lock:
            return [a for a in self._eta if a.order_id == order_id]
