"""
Notifications package

Submodules:
- models: Notification data model and type/priority enums
- service: Notification service over a pluggable store
- scheduler: Periodic cleanup of old read notifications
"""

from .models import Notification, NotificationType, NotificationPriority
from .service import NotificationService
from .scheduler import NotificationCleanupScheduler

__all__ = [
    "Notification",
    "NotificationType",
    "NotificationPriority",
    "NotificationService",
    "NotificationCleanupScheduler",
]
