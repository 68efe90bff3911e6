"""
Delivery API Client

Async HTTP client for the delivery manager endpoints, used by the client-side
providers. Non-2xx responses raise DeliveryApiError with the server's error text.
"""

import httpx
import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Optional

from delivery.eta import format_eta_form

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


class DeliveryApiError(Exception):
    """Raised when a delivery API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DeliveryApiClient:
    """Client for the delivery manager REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tz: tzinfo = timezone.utc,
        timeout: float = 10.0,
    ):
        """
        Initialize delivery API client.

        Args:
            base_url: Server root, without the /api prefix
            token: Delivery manager auth token
            transport: Optional httpx transport (e.g. ASGITransport for in-process calls)
            tz: Timezone the server reads ETA form values in
            timeout: Request timeout in seconds
        """
        self.token = token
        self.tz = tz
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api",
            transport=transport,
            timeout=timeout,
        )

    def set_token(self, token: Optional[str]):
        self.token = token

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def _get_headers(self) -> dict:
        """Get HTTP headers for the delivery API."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("error") or body.get("message") or body.get("detail")
            if message:
                return message if isinstance(message, str) else str(message)
        return f"Request failed with status {response.status_code}"

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, headers=self._get_headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Delivery API {method} {path} failed: {e}")
            raise DeliveryApiError(f"Network error: {e}")

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(f"Delivery API {method} {path} error: {response.status_code} {message}")
            raise DeliveryApiError(message, response.status_code)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # ==================== Tasks ====================

    async def list_tasks(self, status: Optional[str] = None) -> Dict[str, Any]:
        params = {"status": status} if status else None
        return await self._request("GET", "/delivery/tasks/", params=params)

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/delivery/tasks/{task_id}/")

    async def update_task_status(
        self, task_id: str, status: str, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {"status": status}
        if notes:
            payload["notes"] = notes
        return await self._request("PATCH", f"/delivery/tasks/{task_id}/update-status/", json=payload)

    async def update_eta(self, task_id: str, eta: datetime) -> Dict[str, Any]:
        """Send the ETA as the date/time form pair, in the server's timezone."""
        payload = {"eta": format_eta_form(eta, self.tz)}
        return await self._request("PUT", f"/delivery/tasks/{task_id}/eta/", json=payload)

    async def confirm_pickup(self, task_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/delivery/tasks/{task_id}/pickup/")

    async def confirm_handover(self, task_id: str, notes: Optional[str] = None) -> Dict[str, Any]:
        payload = {"notes": notes} if notes else None
        return await self._request("POST", f"/delivery/tasks/{task_id}/handover/", json=payload)

    async def log_eta_update(self, order_id: str, eta: datetime) -> Dict[str, Any]:
        payload = {
            "order_id": order_id,
            "estimated_delivery_time": eta.isoformat(),
        }
        return await self._request("POST", "/delivery/activities/log/eta/", json=payload)

    # ==================== Notifications ====================

    async def list_notifications(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        is_read: Optional[bool] = None,
    ) -> Dict[str, Any]:
        params = {}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        if is_read is not None:
            params["is_read"] = "true" if is_read else "false"
        return await self._request("GET", "/delivery/notifications/", params=params or None)

    async def mark_notification_read(self, notification_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/delivery/notifications/{notification_id}/mark-read/")

    async def mark_all_notifications_read(self) -> Dict[str, Any]:
        return await self._request("POST", "/delivery/notifications/mark-all-read/")

    async def unread_count(self) -> int:
        data = await self._request("GET", "/delivery/notifications/unread-count/")
        return int(data.get("unread_count", 0))

    async def delete_notification(self, notification_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/notifications/{notification_id}/")

    async def delete_all_notifications(self) -> Dict[str, Any]:
        return await self._request("DELETE", "/notifications/delete_all/")

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
