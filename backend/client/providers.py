"""
Delivery manager state providers.

Client-side mirrors of the manager's tasks and notifications. Every mutation
goes to the server first; the local copy changes only when the call succeeds.
Failures never raise: they set `error`, notify listeners and return False.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from common.auth import NO_TOKEN_MESSAGE
from delivery.models import (
    ASSIGNED_STATUSES,
    COMPLETED_STATUSES,
    IN_TRANSIT_STATUSES,
    DeliveryTask,
    TaskStatus,
)
from notifications.models import Notification

from .api_client import DeliveryApiClient, DeliveryApiError

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class _ChangeNotifier:
    """Listener registry shared by the providers."""

    def __init__(self, api: DeliveryApiClient):
        self.api = api
        self.is_loading = False
        self.error: Optional[str] = None
        self._listeners: List[Listener] = []

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_listeners(self):
        for listener in list(self._listeners):
            listener()

    def set_token(self, token: Optional[str]):
        self.api.set_token(token)

    def clear_error(self):
        self.error = None
        self.notify_listeners()

    async def _call(self, action: str, call: Callable[[], Awaitable[Dict]]) -> Optional[Dict]:
        """
        Run an API call, recording failures in `error`.

        Returns:
            Response body (possibly empty) on success, None on failure
        """
        try:
            result = await call()
        except DeliveryApiError as e:
            self.error = e.message
        except Exception as e:
            logger.error(f"Failed to {action}: {e}")
            self.error = f"Failed to {action}: {e}"
        else:
            self.error = None
            return result
        self.notify_listeners()
        return None


class DeliveryTasksProvider(_ChangeNotifier):
    """Tasks assigned to the signed-in delivery manager."""

    def __init__(self, api: DeliveryApiClient):
        super().__init__(api)
        self.tasks: List[DeliveryTask] = []

    @property
    def assigned_tasks_count(self) -> int:
        return sum(1 for t in self.tasks if t.status in ASSIGNED_STATUSES)

    @property
    def in_transit_tasks_count(self) -> int:
        return sum(1 for t in self.tasks if t.status in IN_TRANSIT_STATUSES)

    @property
    def completed_tasks_count(self) -> int:
        return sum(1 for t in self.tasks if t.status in COMPLETED_STATUSES)

    @property
    def urgent_tasks(self) -> List[DeliveryTask]:
        """Tasks needing attention (failed deliveries)."""
        return [t for t in self.tasks if t.status == TaskStatus.FAILED]

    def get_task(self, task_id: str) -> Optional[DeliveryTask]:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None

    def _replace_task(self, task: DeliveryTask):
        for index, existing in enumerate(self.tasks):
            if existing.task_id == task.task_id:
                self.tasks[index] = task
                break
        self.notify_listeners()

    async def load_tasks(self, status: Optional[TaskStatus] = None) -> bool:
        if not self.api.has_token:
            self.error = NO_TOKEN_MESSAGE
            self.notify_listeners()
            return False

        self.is_loading = True
        self.notify_listeners()
        try:
            data = await self._call(
                "load tasks", lambda: self.api.list_tasks(status.value if status else None)
            )
        finally:
            self.is_loading = False
        if data is None:
            self.notify_listeners()
            return False
        self.tasks = [DeliveryTask.from_doc(doc) for doc in data.get("tasks", [])]
        logger.info(f"Loaded {len(self.tasks)} delivery tasks")
        self.notify_listeners()
        return True

    async def update_task_status(
        self, task_id: str, status: TaskStatus, notes: Optional[str] = None
    ) -> bool:
        data = await self._call(
            "update task status",
            lambda: self.api.update_task_status(task_id, status.value, notes),
        )
        if data is None:
            return False
        self._replace_task(DeliveryTask.from_doc(data["task"]))
        return True

    async def update_eta(self, task_id: str, eta: datetime) -> bool:
        data = await self._call("update ETA", lambda: self.api.update_eta(task_id, eta))
        if data is None:
            return False
        self._replace_task(DeliveryTask.from_doc(data["task"]))
        return True

    async def log_eta_update_activity(self, order_id: str, eta: datetime) -> bool:
        """Log an ETA update for an order; the order's local task takes the new ETA."""
        data = await self._call("update ETA", lambda: self.api.log_eta_update(order_id, eta))
        if data is None:
            return False
        now = datetime.now(timezone.utc)
        for task in self.tasks:
            if task.order_id == order_id:
                task.estimated_delivery_time = eta
                task.updated_at = now
        self.notify_listeners()
        return True

    async def confirm_pickup(self, task_id: str) -> bool:
        data = await self._call("confirm pickup", lambda: self.api.confirm_pickup(task_id))
        if data is None:
            return False
        self._replace_task(DeliveryTask.from_doc(data["task"]))
        return True

    async def confirm_handover(self, task_id: str, notes: Optional[str] = None) -> bool:
        data = await self._call(
            "confirm delivery", lambda: self.api.confirm_handover(task_id, notes)
        )
        if data is None:
            return False
        self._replace_task(DeliveryTask.from_doc(data["task"]))
        return True


class DeliveryNotificationsProvider(_ChangeNotifier):
    """Notifications of the signed-in delivery manager."""

    RECENT_WINDOW = timedelta(days=7)

    def __init__(self, api: DeliveryApiClient):
        super().__init__(api)
        self.notifications: List[Notification] = []
        self.unread_count = 0

    @property
    def urgent_notifications(self) -> List[Notification]:
        return [n for n in self.notifications if n.is_urgent]

    def recent_notifications(self, now: Optional[datetime] = None) -> List[Notification]:
        cutoff = (now or datetime.now(timezone.utc)) - self.RECENT_WINDOW
        return [n for n in self.notifications if n.created_at > cutoff]

    def _local_unread(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)

    def _decrement_unread(self):
        self.unread_count = max(0, self.unread_count - 1)

    async def load_notifications(self) -> bool:
        """Fetch notifications; does nothing until a token is set."""
        if not self.api.has_token:
            return False

        self.is_loading = True
        self.notify_listeners()
        try:
            data = await self._call("load notifications", self.api.list_notifications)
        finally:
            self.is_loading = False
        if data is None:
            self.notify_listeners()
            return False
        self.notifications = [Notification.from_doc(doc) for doc in data.get("notifications", [])]
        self.unread_count = max(0, int(data.get("unread_count", self._local_unread())))
        self.notify_listeners()
        return True

    async def mark_as_read(self, notification_id: str) -> bool:
        data = await self._call(
            "mark notification as read",
            lambda: self.api.mark_notification_read(notification_id),
        )
        if data is None:
            return False
        for index, notification in enumerate(self.notifications):
            if notification.notification_id == notification_id:
                if not notification.is_read:
                    self.notifications[index] = notification.mark_read()
                    self._decrement_unread()
                break
        self.notify_listeners()
        return True

    async def mark_all_as_read(self) -> bool:
        data = await self._call(
            "mark all notifications as read", self.api.mark_all_notifications_read
        )
        if data is None:
            return False
        self.notifications = [n.mark_read() for n in self.notifications]
        self.unread_count = 0
        self.notify_listeners()
        return True

    async def delete_notification(self, notification_id: str) -> bool:
        data = await self._call(
            "delete notification", lambda: self.api.delete_notification(notification_id)
        )
        if data is None:
            return False
        remaining = []
        for notification in self.notifications:
            if notification.notification_id == notification_id:
                if not notification.is_read:
                    self._decrement_unread()
            else:
                remaining.append(notification)
        self.notifications = remaining
        self.notify_listeners()
        return True

    async def delete_all_notifications(self) -> bool:
        data = await self._call("delete all notifications", self.api.delete_all_notifications)
        if data is None:
            return False
        self.notifications = []
        self.unread_count = 0
        self.notify_listeners()
        return True

    async def refresh_unread_count(self) -> int:
        """Fetch the unread count, falling back to the local count on failure."""
        try:
            count = await self.api.unread_count()
        except Exception as e:
            logger.error(f"Failed to refresh unread count: {e}")
            count = self._local_unread()
        self.unread_count = max(0, count)
        self.notify_listeners()
        return self.unread_count
