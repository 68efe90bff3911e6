"""
Tests for the delivery REST API (server.py)

Runs the FastAPI app in-process with TestClient against the demo fixture stores.
"""

import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

import server
from common.auth import NO_TOKEN_MESSAGE
from delivery.eta import format_eta_form
from stores import get_stores, reload_stores

MANAGER = {"Authorization": "Bearer demo-manager-token"}
OTHER_MANAGER = {"Authorization": "Bearer other-token"}


@pytest.fixture
def client(monkeypatch):
    reload_stores("demo")
    monkeypatch.setattr(
        server.app.state.settings,
        "api_tokens",
        {"demo-manager-token": "manager-1", "other-token": "manager-2"},
    )
    yield TestClient(server.app)
    reload_stores("test")


def _future_form(hours=3):
    return {"eta": format_eta_form(datetime.now(timezone.utc) + timedelta(hours=hours))}


class TestHealthAndAuth:
    """Test health check and token enforcement."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["mode"] == "demo"

    def test_missing_token_rejected(self, client):
        response = client.get("/api/delivery/tasks/")
        assert response.status_code == 401
        assert response.json()["error"] == NO_TOKEN_MESSAGE
        assert response.json()["code"] == "auth_required"

    def test_unknown_token_rejected(self, client):
        response = client.get("/api/delivery/tasks/", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestTaskEndpoints:
    """Test delivery task endpoints."""

    def test_list_tasks_with_counts(self, client):
        response = client.get("/api/delivery/tasks/", headers=MANAGER)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [t["task_id"] for t in data["tasks"]] == ["task-1001", "task-1002", "task-1003"]
        assert data["counts"]["assigned"] == 2
        assert data["counts"]["in_transit"] == 1
        assert data["counts"]["failed"] == 1

    def test_list_filtered_by_status(self, client):
        response = client.get("/api/delivery/tasks/", params={"status": "failed"}, headers=MANAGER)
        assert [t["task_id"] for t in response.json()["tasks"]] == ["task-1003"]

    def test_other_manager_sees_nothing(self, client):
        response = client.get("/api/delivery/tasks/", headers=OTHER_MANAGER)
        assert response.json()["tasks"] == []
        assert client.get("/api/delivery/tasks/task-1001/", headers=OTHER_MANAGER).status_code == 404

    def test_get_task(self, client):
        response = client.get("/api/delivery/tasks/task-1002/", headers=MANAGER)
        assert response.status_code == 200
        assert response.json()["status"] == "in_transit"
        assert response.json()["customer_name"] == "Omar Khalil"

    def test_get_unknown_task(self, client):
        response = client.get("/api/delivery/tasks/task-404/", headers=MANAGER)
        assert response.status_code == 404
        assert response.json()["error"] == "Task not found: task-404"

    def test_update_status(self, client):
        response = client.patch(
            "/api/delivery/tasks/task-1003/update-status/",
            json={"status": "pending", "notes": "Retry tomorrow"},
            headers=MANAGER,
        )
        assert response.status_code == 200
        task = response.json()["task"]
        assert task["status"] == "pending"
        assert task["retry_count"] == 1
        assert task["status_history"][-1]["notes"] == "Retry tomorrow"

    def test_invalid_transition_rejected_and_task_unchanged(self, client):
        response = client.patch(
            "/api/delivery/tasks/task-1001/update-status/",
            json={"status": "completed"},
            headers=MANAGER,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot change status from 'accepted' to 'completed'"
        assert get_stores().tasks.get("task-1001").status.value == "accepted"

    def test_unknown_status_value(self, client):
        response = client.patch(
            "/api/delivery/tasks/task-1001/update-status/",
            json={"status": "teleported"},
            headers=MANAGER,
        )
        assert response.status_code == 422

    def test_pickup_then_handover(self, client):
        pickup = client.post("/api/delivery/tasks/task-1001/pickup/", headers=MANAGER)
        assert pickup.status_code == 200
        assert pickup.json()["message"] == "Pickup confirmed"
        assert pickup.json()["task"]["status"] == "picked_up"

        handover = client.post(
            "/api/delivery/tasks/task-1001/handover/",
            json={"notes": "Signed by customer"},
            headers=MANAGER,
        )
        assert handover.status_code == 200
        assert handover.json()["message"] == "Delivery confirmed"
        assert handover.json()["task"]["status"] == "delivered"

    def test_handover_before_pickup_rejected(self, client):
        response = client.post("/api/delivery/tasks/task-1001/handover/", headers=MANAGER)
        assert response.status_code == 400


class TestEtaEndpoints:
    """Test ETA form and activity endpoints."""

    def test_update_eta_from_form(self, client):
        form = _future_form()
        response = client.put("/api/delivery/tasks/task-1001/eta/", json=form, headers=MANAGER)
        assert response.status_code == 200
        assert response.json()["message"] == "ETA updated successfully"

        saved = get_stores().tasks.get("task-1001").estimated_delivery_time
        assert format_eta_form(saved) == form["eta"]
        customer = get_stores().notifications.list_for_recipient("customer-11")
        assert customer[0].title == "Delivery Time Updated"

    def test_past_eta_rejected(self, client):
        response = client.put(
            "/api/delivery/tasks/task-1001/eta/",
            json={"eta": format_eta_form(datetime.now(timezone.utc) - timedelta(days=1))},
            headers=MANAGER,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ETA cannot be in the past"
        assert get_stores().tasks.get("task-1001").estimated_delivery_time is None

    def test_malformed_eta_rejected(self, client):
        response = client.put(
            "/api/delivery/tasks/task-1001/eta/",
            json={"eta": {"date": "2026-03-05", "time": "10:00"}},
            headers=MANAGER,
        )
        assert response.status_code == 400

    def test_log_eta_activity(self, client):
        eta = (datetime.now(timezone.utc) + timedelta(hours=4)).replace(microsecond=0)
        response = client.post(
            "/api/delivery/activities/log/eta/",
            json={"order_id": "1002", "estimated_delivery_time": eta.isoformat()},
            headers=MANAGER,
        )
        assert response.status_code == 201
        activity = response.json()["activity"]
        assert activity["activity_type"] == "eta_update"
        assert activity["manager_id"] == "manager-1"
        assert get_stores().tasks.get("task-1002").estimated_delivery_time == eta
        assert len(get_stores().activities.list_eta_activities("1002")) == 1

    def test_log_eta_unknown_order(self, client):
        eta = datetime.now(timezone.utc) + timedelta(hours=4)
        response = client.post(
            "/api/delivery/activities/log/eta/",
            json={"order_id": "999", "estimated_delivery_time": eta.isoformat()},
            headers=MANAGER,
        )
        assert response.status_code == 404

    def test_log_eta_naive_time_rejected(self, client):
        response = client.post(
            "/api/delivery/activities/log/eta/",
            json={"order_id": "1002", "estimated_delivery_time": "2030-01-01T10:00:00"},
            headers=MANAGER,
        )
        assert response.status_code == 400


class TestNotificationEndpoints:
    """Test notification endpoints."""

    def test_list_notifications(self, client):
        response = client.get("/api/delivery/notifications/", headers=MANAGER)
        assert response.status_code == 200
        data = response.json()
        assert [n["id"] for n in data["notifications"]] == ["ntf-1", "ntf-2", "ntf-3"]
        assert data["unread_count"] == 2

    def test_list_unread_only(self, client):
        response = client.get(
            "/api/delivery/notifications/", params={"is_read": "false"}, headers=MANAGER
        )
        assert [n["id"] for n in response.json()["notifications"]] == ["ntf-1", "ntf-2"]

    def test_negative_limit_rejected(self, client):
        response = client.get("/api/delivery/notifications/", params={"limit": -1}, headers=MANAGER)
        assert response.status_code == 422

    def test_mark_read_is_idempotent(self, client):
        first = client.post("/api/delivery/notifications/ntf-1/mark-read/", headers=MANAGER)
        second = client.post("/api/delivery/notifications/ntf-1/mark-read/", headers=MANAGER)
        assert first.status_code == second.status_code == 200
        assert first.json()["notification"]["read_at"] == second.json()["notification"]["read_at"]

        count = client.get("/api/delivery/notifications/unread-count/", headers=MANAGER)
        assert count.json()["unread_count"] == 1

    def test_mark_read_other_recipient_is_404(self, client):
        response = client.post("/api/delivery/notifications/ntf-1/mark-read/", headers=OTHER_MANAGER)
        assert response.status_code == 404
        assert response.json()["error"] == "Notification with ID ntf-1 does not exist"

    def test_mark_all_read(self, client):
        response = client.post("/api/delivery/notifications/mark-all-read/", headers=MANAGER)
        assert response.json() == {"success": True, "updated_count": 2}

    def test_delete_notification(self, client):
        response = client.delete("/api/notifications/ntf-2/", headers=MANAGER)
        assert response.status_code == 204
        remaining = client.get("/api/delivery/notifications/", headers=MANAGER).json()
        assert [n["id"] for n in remaining["notifications"]] == ["ntf-1", "ntf-3"]

    def test_delete_unknown_notification(self, client):
        response = client.delete("/api/notifications/ntf-404/", headers=MANAGER)
        assert response.status_code == 404

    def test_delete_all(self, client):
        response = client.delete("/api/notifications/delete_all/", headers=MANAGER)
        assert response.status_code == 200
        assert response.json()["deleted_count"] == 3
        assert client.get("/api/delivery/notifications/", headers=MANAGER).json()["notifications"] == []
