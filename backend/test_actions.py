"""
Tests for client/actions.py - screen action feedback messages

Uses small fake providers so the calls the screens make can be counted.
"""

import pytest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from client.actions import (
    Feedback,
    confirm_handover,
    confirm_pickup,
    default_eta,
    delete_all_notifications,
    delete_notification,
    latest_eta,
    mark_as_read,
    submit_eta_update,
)
from delivery.models import DeliveryTask, TaskStatus

NOW = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)


class FakeTasksProvider:
    def __init__(self, result=True, error=None, raises=None):
        self.result = result
        self.error = error
        self.raises = raises
        self.calls = []

    async def log_eta_update_activity(self, order_id, eta):
        self.calls.append(("log_eta", order_id, eta))
        if self.raises:
            raise self.raises
        return self.result

    async def confirm_pickup(self, task_id):
        self.calls.append(("pickup", task_id))
        return self.result

    async def confirm_handover(self, task_id, notes=None):
        self.calls.append(("handover", task_id, notes))
        return self.result


class FakeNotificationsProvider:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def mark_as_read(self, notification_id):
        self.calls.append(("mark_read", notification_id))
        return self.result

    async def delete_notification(self, notification_id):
        self.calls.append(("delete", notification_id))
        return self.result

    async def delete_all_notifications(self):
        self.calls.append(("delete_all",))
        return self.result


@pytest.fixture
def task():
    return DeliveryTask(
        task_id="task-1002",
        order_id="1002",
        task_number="TASK-1002",
        status=TaskStatus.IN_TRANSIT,
    )


class TestSubmitEtaUpdate:
    """Test the ETA screen save button."""

    @pytest.mark.asyncio
    async def test_past_selection_shows_error_and_skips_store(self, task):
        provider = FakeTasksProvider()
        feedback = await submit_eta_update(provider, task, NOW - timedelta(minutes=1), now=NOW)

        assert feedback == Feedback("error", "ETA cannot be in the past")
        assert feedback.is_error is True
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_naive_past_selection_returns_error(self, task):
        provider = FakeTasksProvider()
        feedback = await submit_eta_update(provider, task, datetime(2020, 1, 1), now=NOW)

        assert feedback == Feedback("error", "ETA cannot be in the past")
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_naive_selection_read_in_picker_timezone(self, task):
        provider = FakeTasksProvider()
        tokyo = ZoneInfo("Asia/Tokyo")
        feedback = await submit_eta_update(
            provider, task, datetime(2026, 3, 6, 9, 0), now=NOW, tz=tokyo
        )

        assert feedback == Feedback("success", "ETA updated successfully")
        sent = provider.calls[0][2]
        assert sent == datetime(2026, 3, 6, 0, 0, tzinfo=timezone.utc)
        assert sent.tzinfo is tokyo

    @pytest.mark.asyncio
    async def test_success(self, task):
        provider = FakeTasksProvider()
        selected = NOW + timedelta(hours=3)
        feedback = await submit_eta_update(provider, task, selected, now=NOW)

        assert feedback == Feedback("success", "ETA updated successfully")
        assert provider.calls == [("log_eta", "1002", selected)]

    CASES = [
        ("provider error", "Task not found: 1002", "Task not found: 1002"),
        ("no error text", None, "Failed to update ETA"),
    ]

    @pytest.mark.parametrize("name,provider_error,expected", CASES)
    @pytest.mark.asyncio
    async def test_failure_message(self, task, name, provider_error, expected):
        provider = FakeTasksProvider(result=False, error=provider_error)
        feedback = await submit_eta_update(provider, task, NOW + timedelta(hours=1), now=NOW)
        assert feedback == Feedback("error", expected), f"Failed on {name}"

    @pytest.mark.asyncio
    async def test_exception_message(self, task):
        provider = FakeTasksProvider(raises=RuntimeError("socket closed"))
        feedback = await submit_eta_update(provider, task, NOW + timedelta(hours=1), now=NOW)
        assert feedback == Feedback("error", "Error updating ETA: socket closed")


class TestPickerBounds:
    """Test ETA picker values."""

    def test_default_without_eta(self, task):
        assert default_eta(task, now=NOW) == NOW + timedelta(hours=2)

    def test_default_with_eta(self, task):
        task.estimated_delivery_time = NOW + timedelta(hours=6)
        assert default_eta(task, now=NOW) == NOW + timedelta(hours=6)

    def test_latest(self):
        assert latest_eta(now=NOW) == NOW + timedelta(days=30)


class TestTaskActions:
    """Test pickup / handover buttons."""

    @pytest.mark.asyncio
    async def test_pickup(self, task):
        provider = FakeTasksProvider()
        assert await confirm_pickup(provider, task) == Feedback("success", "Pickup confirmed")
        assert provider.calls == [("pickup", "task-1002")]

    @pytest.mark.asyncio
    async def test_handover(self, task):
        provider = FakeTasksProvider()
        feedback = await confirm_handover(provider, task, notes="Front desk")
        assert feedback == Feedback("success", "Delivery confirmed")
        assert provider.calls == [("handover", "task-1002", "Front desk")]

    @pytest.mark.asyncio
    async def test_handover_failure_uses_provider_error(self, task):
        provider = FakeTasksProvider(result=False, error="Cannot change status from 'accepted' to 'delivered'")
        feedback = await confirm_handover(provider, task)
        assert feedback.is_error is True
        assert feedback.text == "Cannot change status from 'accepted' to 'delivered'"


class TestNotificationActions:
    """Test notification screen actions."""

    CASES = [
        ("delete ok", delete_notification, ("ntf-1",), True, Feedback("success", "Notification deleted successfully")),
        ("delete failed", delete_notification, ("ntf-1",), False, Feedback("error", "Unable to delete notification. Please try again.")),
        ("delete all ok", delete_all_notifications, (), True, Feedback("success", "All notifications deleted successfully")),
        ("delete all failed", delete_all_notifications, (), False, Feedback("error", "Unable to delete all notifications. Please try again.")),
    ]

    @pytest.mark.parametrize("name,action,args,result,expected", CASES)
    @pytest.mark.asyncio
    async def test_delete_feedback(self, name, action, args, result, expected):
        provider = FakeNotificationsProvider(result=result)
        assert await action(provider, *args) == expected, f"Failed on {name}"

    @pytest.mark.asyncio
    async def test_mark_as_read_is_silent_on_success(self):
        provider = FakeNotificationsProvider()
        assert await mark_as_read(provider, "ntf-1") is None
        assert provider.calls == [("mark_read", "ntf-1")]

    @pytest.mark.asyncio
    async def test_mark_as_read_failure(self):
        provider = FakeNotificationsProvider(result=False, error="Network error: timeout")
        feedback = await mark_as_read(provider, "ntf-1")
        assert feedback == Feedback("error", "Network error: timeout")
