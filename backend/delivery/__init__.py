"""
Delivery package

Submodules:
- models: Delivery task, status lifecycle, ETA activity
- eta: Pure ETA parsing/validation/formatting rules
- service: Delivery task service over pluggable stores
"""

from .models import DeliveryTask, EtaActivity, TaskStatus, TaskType
from .service import DeliveryTaskService

__all__ = [
    "DeliveryTask",
    "EtaActivity",
    "TaskStatus",
    "TaskType",
    "DeliveryTaskService",
]
