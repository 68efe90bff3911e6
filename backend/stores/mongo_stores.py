from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from delivery.models import DeliveryTask, EtaActivity, TaskStatus
from notifications.models import Notification, NotificationType

from .contracts import ActivityStore, NotificationStore, TaskStore

logger = logging.getLogger(__name__)


class MongoTaskStore(TaskStore):
    """Delivery tasks in the `delivery_tasks` collection."""

    def __init__(self, db: Database):
        self.collection = db.delivery_tasks
        self.collection.create_index("task_id", unique=True)
        self.collection.create_index("order_id")
        self.collection.create_index([("assigned_to", ASCENDING), ("created_at", DESCENDING)])

    def get(self, task_id: str) -> Optional[DeliveryTask]:
        doc = self.collection.find_one({"task_id": task_id})
        return DeliveryTask.from_doc(doc) if doc else None

    def find_by_order(self, order_id: str) -> Optional[DeliveryTask]:
        doc = self.collection.find_one(
            {"order_id": order_id},
            sort=[("created_at", DESCENDING)],
        )
        return DeliveryTask.from_doc(doc) if doc else None

    def list_for_manager(
        self, manager_id: str, status: Optional[TaskStatus] = None
    ) -> List[DeliveryTask]:
        query = {"assigned_to": manager_id}
        if status is not None:
            query["status"] = status.value
        cursor = self.collection.find(query).sort("created_at", DESCENDING)
        return [DeliveryTask.from_doc(doc) for doc in cursor]

    def save(self, task: DeliveryTask) -> None:
        self.collection.update_one(
            {"task_id": task.task_id},
            {"$set": task.to_doc()},
            upsert=True,
        )


class MongoNotificationStore(NotificationStore):
    """Notifications in the `notifications` collection."""

    def __init__(self, db: Database):
        self.collection = db.notifications
        self.collection.create_index("notification_id", unique=True)
        self.collection.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])
        self.collection.create_index([("recipient_id", ASCENDING), ("is_read", ASCENDING)])

    def add(self, notification: Notification) -> None:
        self.collection.insert_one(notification.to_doc())

    def get(self, notification_id: str) -> Optional[Notification]:
        doc = self.collection.find_one({"notification_id": notification_id})
        return Notification.from_doc(doc) if doc else None

    def save(self, notification: Notification) -> None:
        self.collection.update_one(
            {"notification_id": notification.notification_id},
            {"$set": notification.to_doc()},
            upsert=True,
        )

    def list_for_recipient(
        self,
        recipient_id: str,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Notification]:
        query = {"recipient_id": recipient_id}
        if is_read is not None:
            query["is_read"] = is_read
        if notification_type is not None:
            query["notification_type"] = notification_type.value
        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)
        return [Notification.from_doc(doc) for doc in cursor]

    def count_unread(self, recipient_id: str) -> int:
        return self.collection.count_documents({"recipient_id": recipient_id, "is_read": False})

    def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        result = self.collection.update_many(
            {"recipient_id": recipient_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": read_at}},
        )
        return result.modified_count

    def delete(self, notification_id: str) -> bool:
        result = self.collection.delete_one({"notification_id": notification_id})
        return result.deleted_count == 1

    def delete_for_recipient(self, recipient_id: str) -> int:
        result = self.collection.delete_many({"recipient_id": recipient_id})
        return result.deleted_count

    def delete_read_before(self, cutoff: datetime) -> int:
        result = self.collection.delete_many({"is_read": True, "read_at": {"$lt": cutoff}})
        logger.info(f"Deleted {result.deleted_count} read notifications older than {cutoff.isoformat()}")
        return result.deleted_count


class MongoActivityStore(ActivityStore):
    """Delivery activity log in the `delivery_activities` collection."""

    def __init__(self, db: Database):
        self.collection = db.delivery_activities
        self.collection.create_index("activity_id", unique=True)
        self.collection.create_index([("order_id", ASCENDING), ("created_at", ASCENDING)])

    def add_eta_activity(self, activity: EtaActivity) -> None:
        doc = activity.to_doc()
        doc["activity_type"] = "eta_update"
        self.collection.insert_one(doc)

    def list_eta_activities(self, order_id: str) -> List[EtaActivity]:
        cursor = self.collection.find(
            {"order_id": order_id, "activity_type": "eta_update"}
        ).sort("created_at", ASCENDING)
        return [EtaActivity.from_doc(doc) for doc in cursor]
