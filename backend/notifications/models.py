"""
Notification domain models.

Defines delivery manager notifications and their type/priority vocabularies.
"""

from dataclasses import dataclass, asdict, replace
from datetime import datetime, timezone
from typing import Optional
from enum import Enum

from common.timestamps import parse_datetime


class NotificationType(str, Enum):
    """Types of notifications shown in the manager's list."""
    URGENT = "urgent"
    INFO = "info"
    SUCCESS = "success"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class Notification:
    """A notification delivered to a user (manager or customer)."""
    notification_id: str
    recipient_id: str
    title: str
    message: str
    notification_type: NotificationType = NotificationType.INFO
    priority: NotificationPriority = NotificationPriority.NORMAL
    is_read: bool = False
    related_order_id: Optional[str] = None
    created_at: datetime = None
    read_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, 'created_at', datetime.now(timezone.utc))

    @property
    def is_urgent(self) -> bool:
        """Urgent by type or by high/urgent priority."""
        return (
            self.notification_type == NotificationType.URGENT
            or self.priority in (NotificationPriority.HIGH, NotificationPriority.URGENT)
        )

    def mark_read(self, at: Optional[datetime] = None) -> "Notification":
        """Return a read copy. read_at is only set on the first read."""
        if self.is_read:
            return self
        return replace(self, is_read=True, read_at=at or datetime.now(timezone.utc))

    def to_doc(self) -> dict:
        """Convert to a storage document."""
        doc = asdict(self)
        doc['notification_type'] = self.notification_type.value
        doc['priority'] = self.priority.value
        return doc

    def to_json(self) -> dict:
        """Convert to an API payload."""
        doc = self.to_doc()
        doc['id'] = self.notification_id
        doc['type'] = self.notification_type.value
        doc['created_at'] = self.created_at.isoformat()
        doc['read_at'] = self.read_at.isoformat() if self.read_at else None
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> "Notification":
        return cls(
            notification_id=str(doc.get("notification_id") or doc.get("id")),
            recipient_id=str(doc["recipient_id"]),
            title=doc.get("title", ""),
            message=doc.get("message", ""),
            notification_type=NotificationType(
                doc.get("notification_type") or doc.get("type") or NotificationType.INFO.value
            ),
            priority=NotificationPriority(doc.get("priority") or NotificationPriority.NORMAL.value),
            is_read=bool(doc.get("is_read", False)),
            related_order_id=doc.get("related_order_id"),
            created_at=parse_datetime(doc.get("created_at")),
            read_at=parse_datetime(doc.get("read_at")),
        )
