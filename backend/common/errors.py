"""
Delivery Domain Errors

Raised by the services and translated to HTTP responses in server.py.
"""


class DeliveryError(Exception):
    """Base class for delivery backend errors."""


class TaskNotFoundError(DeliveryError, LookupError):
    """Raised when a delivery task id (or order id) is unknown."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class NotificationNotFoundError(DeliveryError, LookupError):
    """Raised when a notification id is unknown."""

    def __init__(self, notification_id: str):
        super().__init__(f"Notification with ID {notification_id} does not exist")
        self.notification_id = notification_id


class InvalidStatusTransitionError(DeliveryError, ValueError):
    """Raised when a task cannot move from its current status to the requested one."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change status from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class InvalidEtaError(DeliveryError, ValueError):
    """Raised when an ETA is malformed, in the past, or too far ahead."""
