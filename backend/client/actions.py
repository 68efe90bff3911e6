"""
Delivery manager screen actions.

What each screen does when the manager taps a button, without the widgets:
validate the input, call the provider, and return the message to show.
"""

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional

from delivery import eta as eta_rules
from delivery.models import DeliveryTask

from .providers import DeliveryNotificationsProvider, DeliveryTasksProvider

SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Feedback:
    """Snackbar message shown after an action."""
    kind: str
    text: str

    @property
    def is_error(self) -> bool:
        return self.kind == ERROR


def default_eta(task: DeliveryTask, now: Optional[datetime] = None) -> datetime:
    """Initial picker value: the task's ETA, or two hours from now."""
    return eta_rules.default_eta(task.estimated_delivery_time, now)


def latest_eta(now: Optional[datetime] = None) -> datetime:
    return eta_rules.latest_eta(now)


async def submit_eta_update(
    provider: DeliveryTasksProvider,
    task: DeliveryTask,
    selected: datetime,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> Feedback:
    """
    Save the ETA picked on the ETA screen.

    A naive selection is read in `tz`, the zone the picker shows. A past
    selection is rejected before anything is sent.
    """
    now = now or datetime.now(timezone.utc)
    if selected.tzinfo is None:
        selected = selected.replace(tzinfo=tz)
    if selected < now:
        return Feedback(ERROR, eta_rules.PAST_ETA_MESSAGE)

    try:
        success = await provider.log_eta_update_activity(task.order_id, selected)
    except Exception as e:
        return Feedback(ERROR, f"Error updating ETA: {e}")
    if success:
        return Feedback(SUCCESS, "ETA updated successfully")
    return Feedback(ERROR, provider.error or "Failed to update ETA")


async def confirm_pickup(provider: DeliveryTasksProvider, task: DeliveryTask) -> Feedback:
    if await provider.confirm_pickup(task.task_id):
        return Feedback(SUCCESS, "Pickup confirmed")
    return Feedback(ERROR, provider.error or "Failed to confirm pickup")


async def confirm_handover(
    provider: DeliveryTasksProvider, task: DeliveryTask, notes: Optional[str] = None
) -> Feedback:
    if await provider.confirm_handover(task.task_id, notes):
        return Feedback(SUCCESS, "Delivery confirmed")
    return Feedback(ERROR, provider.error or "Failed to confirm delivery")


async def mark_as_read(provider: DeliveryNotificationsProvider, notification_id: str) -> Optional[Feedback]:
    """Tap on a notification. Only failures are reported."""
    if await provider.mark_as_read(notification_id):
        return None
    return Feedback(ERROR, provider.error or "Failed to mark notification as read")


async def delete_notification(
    provider: DeliveryNotificationsProvider, notification_id: str
) -> Feedback:
    if await provider.delete_notification(notification_id):
        return Feedback(SUCCESS, "Notification deleted successfully")
    return Feedback(ERROR, "Unable to delete notification. Please try again.")


async def delete_all_notifications(provider: DeliveryNotificationsProvider) -> Feedback:
    if await provider.delete_all_notifications():
        return Feedback(SUCCESS, "All notifications deleted successfully")
    return Feedback(ERROR, "Unable to delete all notifications. Please try again.")
