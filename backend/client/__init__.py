"""
Delivery manager client

Submodules:
- api_client: Async HTTP client for the delivery API
- providers: Task and notification state mirrors with change listeners
- actions: Screen actions returning the feedback message to show
"""

from .api_client import DeliveryApiClient, DeliveryApiError
from .providers import DeliveryNotificationsProvider, DeliveryTasksProvider
from .actions import Feedback

__all__ = [
    "DeliveryApiClient",
    "DeliveryApiError",
    "DeliveryNotificationsProvider",
    "DeliveryTasksProvider",
    "Feedback",
]
