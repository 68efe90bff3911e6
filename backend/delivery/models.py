"""
Delivery task domain models.

Defines delivery tasks, their status lifecycle, and ETA activity records.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from common.timestamps import parse_datetime


class TaskStatus(str, Enum):
    """Delivery task lifecycle status."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_PROGRESS = "in_progress"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class TaskType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"
    RETURN = "return"


ALLOWED_TRANSITIONS: Dict[TaskStatus, frozenset] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ASSIGNED, TaskStatus.ACCEPTED, TaskStatus.CANCELLED}),
    TaskStatus.ASSIGNED: frozenset({TaskStatus.ACCEPTED, TaskStatus.CANCELLED, TaskStatus.FAILED}),
    TaskStatus.ACCEPTED: frozenset({
        TaskStatus.PICKED_UP, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED, TaskStatus.FAILED,
    }),
    TaskStatus.PICKED_UP: frozenset({
        TaskStatus.IN_PROGRESS, TaskStatus.IN_TRANSIT, TaskStatus.DELIVERED, TaskStatus.FAILED,
    }),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.IN_TRANSIT, TaskStatus.DELIVERED, TaskStatus.FAILED}),
    TaskStatus.IN_TRANSIT: frozenset({TaskStatus.DELIVERED, TaskStatus.FAILED}),
    TaskStatus.DELIVERED: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.FAILED: frozenset({TaskStatus.PENDING}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

# Lifecycle timestamp stamped when a task enters a status
STATUS_TIMESTAMP_FIELDS = {
    TaskStatus.ASSIGNED: "assigned_at",
    TaskStatus.ACCEPTED: "accepted_at",
    TaskStatus.PICKED_UP: "picked_up_at",
    TaskStatus.DELIVERED: "delivered_at",
    TaskStatus.COMPLETED: "completed_at",
}

# Counter groupings used by the manager dashboard
ASSIGNED_STATUSES = frozenset({
    TaskStatus.ASSIGNED, TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS,
    TaskStatus.IN_TRANSIT, TaskStatus.PICKED_UP,
})
IN_TRANSIT_STATUSES = frozenset({TaskStatus.IN_PROGRESS, TaskStatus.IN_TRANSIT, TaskStatus.PICKED_UP})
COMPLETED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.DELIVERED})
HANDOVER_STATUSES = frozenset({TaskStatus.PICKED_UP, TaskStatus.IN_PROGRESS, TaskStatus.IN_TRANSIT})


def can_transition(current: TaskStatus, requested: TaskStatus) -> bool:
    """Check whether a task may move from current to requested status."""
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


DATETIME_FIELDS = (
    "estimated_delivery_time",
    "assigned_at",
    "accepted_at",
    "picked_up_at",
    "delivered_at",
    "completed_at",
    "created_at",
    "updated_at",
)


@dataclass
class DeliveryTask:
    """A delivery task assigned to a delivery manager."""
    task_id: str
    order_id: str
    task_number: str
    status: TaskStatus = TaskStatus.PENDING
    task_type: TaskType = TaskType.DELIVERY
    customer_id: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    customer_address: str = ""
    delivery_address: str = ""
    delivery_city: str = ""
    notes: Optional[str] = None
    assigned_to: Optional[str] = None
    estimated_delivery_time: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    retry_count: int = 0
    items: List[Dict[str, Any]] = field(default_factory=list)
    status_history: List[Dict[str, Any]] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: datetime = None
    updated_at: datetime = None

    def __post_init__(self):
        now = datetime.now(timezone.utc)
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def customer(self) -> Dict[str, str]:
        return {
            "id": self.customer_id,
            "name": self.customer_name,
            "phone": self.customer_phone,
            "email": self.customer_email,
            "address": self.customer_address,
        }

    @property
    def can_accept(self) -> bool:
        return self.status in (TaskStatus.PENDING, TaskStatus.ASSIGNED)

    @property
    def can_pickup(self) -> bool:
        return self.status == TaskStatus.ACCEPTED

    @property
    def can_deliver(self) -> bool:
        return self.status in HANDOVER_STATUSES

    @property
    def can_complete(self) -> bool:
        return self.status == TaskStatus.DELIVERED

    def time_remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Time left until the ETA, clamped at zero. None when no ETA is set."""
        if self.estimated_delivery_time is None:
            return None
        now = now or datetime.now(timezone.utc)
        remaining = self.estimated_delivery_time - now
        return remaining if remaining > timedelta(0) else timedelta(0)

    def to_doc(self) -> dict:
        """Convert to a storage document (datetimes kept as datetime)."""
        doc = asdict(self)
        doc["status"] = self.status.value
        doc["task_type"] = self.task_type.value
        return doc

    def to_json(self) -> dict:
        """Convert to a JSON-safe API payload."""
        doc = self.to_doc()
        for name in DATETIME_FIELDS:
            value = doc.get(name)
            doc[name] = value.isoformat() if value is not None else None
        doc["status_history"] = [
            {**entry, "at": entry["at"].isoformat() if isinstance(entry.get("at"), datetime) else entry.get("at")}
            for entry in self.status_history
        ]
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> "DeliveryTask":
        """Build a task from a storage document or API payload."""
        data = {k: v for k, v in doc.items() if k in cls.__dataclass_fields__}
        for name in DATETIME_FIELDS:
            if name in data:
                data[name] = parse_datetime(data[name])
        data["status"] = TaskStatus(data.get("status") or TaskStatus.PENDING.value)
        data["task_type"] = TaskType(data.get("task_type") or TaskType.DELIVERY.value)
        data["status_history"] = [
            {**entry, "at": parse_datetime(entry.get("at"))}
            for entry in data.get("status_history") or []
        ]
        data["items"] = list(data.get("items") or [])
        return cls(**data)


@dataclass(frozen=True)
class EtaActivity:
    """A logged ETA update made by a delivery manager."""
    activity_id: str
    order_id: str
    manager_id: str
    estimated_delivery_time: datetime
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, 'created_at', datetime.now(timezone.utc))

    def to_doc(self) -> dict:
        return asdict(self)

    def to_json(self) -> dict:
        return {
            "activity_id": self.activity_id,
            "activity_type": "eta_update",
            "order_id": self.order_id,
            "manager_id": self.manager_id,
            "estimated_delivery_time": self.estimated_delivery_time.isoformat(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "EtaActivity":
        return cls(
            activity_id=doc["activity_id"],
            order_id=doc["order_id"],
            manager_id=doc["manager_id"],
            estimated_delivery_time=parse_datetime(doc["estimated_delivery_time"]),
            created_at=parse_datetime(doc.get("created_at")),
        )
