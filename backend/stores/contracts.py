from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from delivery.models import DeliveryTask, EtaActivity, TaskStatus
from notifications.models import Notification, NotificationType


class TaskStore(Protocol):
    def get(self, task_id: str) -> Optional[DeliveryTask]:
        ...

    def find_by_order(self, order_id: str) -> Optional[DeliveryTask]:
        ...

    def list_for_manager(
        self, manager_id: str, status: Optional[TaskStatus] = None
    ) -> List[DeliveryTask]:
        ...

    def save(self, task: DeliveryTask) -> None:
        ...


class NotificationStore(Protocol):
    def add(self, notification: Notification) -> None:
        ...

    def get(self, notification_id: str) -> Optional[Notification]:
        ...

    def save(self, notification: Notification) -> None:
        ...

    def list_for_recipient(
        self,
        recipient_id: str,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Notification]:
        ...

    def count_unread(self, recipient_id: str) -> int:
        ...

    def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        ...

    def delete(self, notification_id: str) -> bool:
        ...

    def delete_for_recipient(self, recipient_id: str) -> int:
        ...

    def delete_read_before(self, cutoff: datetime) -> int:
        ...


class ActivityStore(Protocol):
    def add_eta_activity(self, activity: EtaActivity) -> None:
        ...

    def list_eta_activities(self, order_id: str) -> List[EtaActivity]:
        ...
