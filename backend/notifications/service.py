"""
Notification Service - Manages delivery manager and customer notifications.

Handles:
- Listing a recipient's notifications (newest first, filterable)
- Marking one or all notifications as read
- Deleting one or all notifications
- Unread counts
- Creating "delivery time updated" notifications for customers
- Cleaning up old read notifications
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, List, Optional
from uuid import uuid4

from common.errors import NotificationNotFoundError
from delivery.eta import format_eta_message

from .models import Notification, NotificationPriority, NotificationType

if TYPE_CHECKING:
    from stores.contracts import NotificationStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for managing notifications."""

    RECENT_WINDOW = timedelta(days=7)

    def __init__(self, store: NotificationStore, tz: tzinfo = timezone.utc):
        """
        Initialize notification service.

        Args:
            store: Notification persistence backend
            tz: Timezone used when formatting times in messages
        """
        self.store = store
        self.tz = tz

    def create_notification(
        self,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.INFO,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        related_order_id: Optional[str] = None,
    ) -> Notification:
        """
        Create and store a notification.

        Raises:
            ValueError: If recipient, title or message is empty
        """
        if not recipient_id or not title or not message:
            raise ValueError("recipient_id, title, and message required")

        notification = Notification(
            notification_id=str(uuid4()),
            recipient_id=recipient_id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            related_order_id=related_order_id,
        )
        self.store.add(notification)
        logger.info(
            f"Created {notification_type.value} notification {notification.notification_id} "
            f"for {recipient_id}"
        )
        return notification

    def list_notifications(
        self,
        recipient_id: str,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Notification]:
        """
        Get a recipient's notifications, newest first.

        Args:
            recipient_id: User ID
            is_read: Only read (True) or unread (False) notifications
            notification_type: Only this type
            limit: Maximum number returned
            offset: Number skipped from the newest end

        Raises:
            ValueError: If limit or offset is negative
        """
        if (limit is not None and limit < 0) or (offset is not None and offset < 0):
            raise ValueError("limit and offset must be non-negative")
        return self.store.list_for_recipient(
            recipient_id,
            is_read=is_read,
            notification_type=notification_type,
            limit=limit,
            offset=offset or 0,
        )

    def get_notification(self, notification_id: str) -> Notification:
        notification = self.store.get(notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    def mark_as_read(self, notification_id: str) -> Notification:
        """
        Mark a notification as read. Reading twice keeps the first read_at.

        Raises:
            NotificationNotFoundError: If the id is unknown
        """
        notification = self.get_notification(notification_id)
        if notification.is_read:
            return notification
        updated = notification.mark_read()
        self.store.save(updated)
        logger.info(f"Notification {notification_id} marked as read")
        return updated

    def mark_all_as_read(self, recipient_id: str) -> int:
        """
        Mark every unread notification of a recipient as read.

        Returns:
            Number of notifications changed
        """
        count = self.store.mark_all_read(recipient_id, datetime.now(timezone.utc))
        logger.info(f"{count} notifications marked as read for {recipient_id}")
        return count

    def delete_notification(self, notification_id: str) -> None:
        """
        Delete a notification.

        Raises:
            NotificationNotFoundError: If the id is unknown
        """
        if not self.store.delete(notification_id):
            raise NotificationNotFoundError(notification_id)
        logger.info(f"Deleted notification {notification_id}")

    def delete_all(self, recipient_id: str) -> int:
        """
        Delete every notification of a recipient.

        Returns:
            Number of notifications deleted
        """
        count = self.store.delete_for_recipient(recipient_id)
        logger.info(f"Deleted {count} notifications for {recipient_id}")
        return count

    def unread_count(self, recipient_id: str) -> int:
        return self.store.count_unread(recipient_id)

    def urgent_notifications(self, recipient_id: str) -> List[Notification]:
        """Notifications of urgent type or high/urgent priority."""
        return [n for n in self.list_notifications(recipient_id) if n.is_urgent]

    def recent_notifications(
        self, recipient_id: str, now: Optional[datetime] = None
    ) -> List[Notification]:
        """Notifications created within the last seven days."""
        cutoff = (now or datetime.now(timezone.utc)) - self.RECENT_WINDOW
        return [n for n in self.list_notifications(recipient_id) if n.created_at > cutoff]

    def notify_delivery_time_updated(
        self, order_id: str, recipient_id: str, estimated_delivery_time: datetime
    ) -> Notification:
        """
        Tell a customer their order's estimated delivery time changed.

        Args:
            order_id: Order ID shown in the message
            recipient_id: Customer user ID
            estimated_delivery_time: New ETA (aware datetime)
        """
        formatted_time = format_eta_message(estimated_delivery_time, self.tz)
        return self.create_notification(
            recipient_id=recipient_id,
            title="Delivery Time Updated",
            message=(
                f"The estimated delivery time for your order #{order_id} "
                f"has been updated to {formatted_time}."
            ),
            notification_type=NotificationType.INFO,
            related_order_id=order_id,
        )

    def cleanup_old_notifications(self, days: int = 30, now: Optional[datetime] = None) -> int:
        """
        Delete read notifications whose read_at is older than `days`.

        Returns:
            Number of notifications deleted
        """
        if days < 0:
            raise ValueError("days must be non-negative")
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        count = self.store.delete_read_before(cutoff)
        logger.info(f"Notification cleanup removed {count} read notifications")
        return count
