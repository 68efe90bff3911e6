"""
Delivery Task Service - Manages the tasks assigned to delivery managers.

Handles:
- Listing a manager's tasks and dashboard counters
- Status transitions (accept, pickup, transit, handover, complete, fail, retry)
- ETA updates, with a customer notification
- The ETA activity log
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Dict, List, Optional
from uuid import uuid4

from common.errors import InvalidStatusTransitionError, TaskNotFoundError

from .eta import PAST_TOLERANCE, validate_eta
from .models import (
    ASSIGNED_STATUSES,
    COMPLETED_STATUSES,
    HANDOVER_STATUSES,
    IN_TRANSIT_STATUSES,
    STATUS_TIMESTAMP_FIELDS,
    DeliveryTask,
    EtaActivity,
    TaskStatus,
    can_transition,
)

if TYPE_CHECKING:
    from notifications.service import NotificationService
    from stores.contracts import ActivityStore, TaskStore

logger = logging.getLogger(__name__)


class DeliveryTaskService:
    """Service for delivery task state and ETA changes."""

    def __init__(
        self,
        task_store: TaskStore,
        activity_store: ActivityStore,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        Initialize delivery task service.

        Args:
            task_store: Task persistence backend
            activity_store: Activity log backend
            notification_service: Used to notify customers of ETA changes
                (optional; no notifications when omitted)
        """
        self.task_store = task_store
        self.activity_store = activity_store
        self.notification_service = notification_service

    def list_tasks(
        self, manager_id: str, status: Optional[TaskStatus] = None
    ) -> List[DeliveryTask]:
        """Tasks assigned to a manager, newest first."""
        return self.task_store.list_for_manager(manager_id, status)

    def get_task(self, task_id: str) -> DeliveryTask:
        """
        Raises:
            TaskNotFoundError: If the id is unknown
        """
        task = self.task_store.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def task_counts(self, manager_id: str) -> Dict[str, int]:
        """Dashboard counters for a manager."""
        tasks = self.list_tasks(manager_id)
        return {
            "total": len(tasks),
            "assigned": sum(1 for t in tasks if t.status in ASSIGNED_STATUSES),
            "in_transit": sum(1 for t in tasks if t.status in IN_TRANSIT_STATUSES),
            "completed": sum(1 for t in tasks if t.status in COMPLETED_STATUSES),
            "failed": sum(1 for t in tasks if t.status == TaskStatus.FAILED),
        }

    def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        notes: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> DeliveryTask:
        """
        Move a task to a new status.

        Stamps the lifecycle timestamp for the new status and appends to
        status_history. Retrying a failed task (failed -> pending) bumps
        retry_count and clears failure_reason.

        Raises:
            TaskNotFoundError: If the id is unknown
            InvalidStatusTransitionError: If the move is not allowed
        """
        task = self.get_task(task_id)
        if not can_transition(task.status, status):
            raise InvalidStatusTransitionError(task.status.value, status.value)

        now = datetime.now(timezone.utc)
        previous = task.status
        task.status = status
        task.updated_at = now
        stamp = STATUS_TIMESTAMP_FIELDS.get(status)
        if stamp:
            setattr(task, stamp, now)
        if status == TaskStatus.FAILED:
            task.failure_reason = failure_reason or notes
        if previous == TaskStatus.FAILED and status == TaskStatus.PENDING:
            task.retry_count += 1
            task.failure_reason = None
        task.status_history.append({"status": status.value, "at": now, "notes": notes})

        self.task_store.save(task)
        logger.info(f"Task {task_id} status {previous.value} -> {status.value}")
        return task

    def confirm_pickup(self, task_id: str, notes: Optional[str] = None) -> DeliveryTask:
        """Record that the parcel was collected (accepted -> picked_up)."""
        return self.update_status(task_id, TaskStatus.PICKED_UP, notes or "Pickup confirmed")

    def confirm_handover(self, task_id: str, notes: Optional[str] = None) -> DeliveryTask:
        """
        Record that the parcel was handed to the customer.

        Raises:
            InvalidStatusTransitionError: If the task is not picked up or on its way
        """
        task = self.get_task(task_id)
        if task.status not in HANDOVER_STATUSES:
            raise InvalidStatusTransitionError(task.status.value, TaskStatus.DELIVERED.value)
        return self.update_status(task_id, TaskStatus.DELIVERED, notes or "Delivery confirmed")

    def update_eta(
        self, task_id: str, eta: datetime, now: Optional[datetime] = None
    ) -> DeliveryTask:
        """
        Set a task's estimated delivery time and notify the customer.

        Raises:
            TaskNotFoundError: If the id is unknown
            InvalidEtaError: If the ETA is naive, past, or over 30 days ahead
        """
        eta = validate_eta(eta, now=now, tolerance=PAST_TOLERANCE)
        task = self.get_task(task_id)
        task.estimated_delivery_time = eta
        task.updated_at = datetime.now(timezone.utc)
        self.task_store.save(task)
        logger.info(f"Task {task_id} ETA set to {eta.isoformat()}")

        if self.notification_service and task.customer_id:
            try:
                self.notification_service.notify_delivery_time_updated(
                    task.order_id, task.customer_id, eta
                )
            except Exception as e:
                # The ETA is saved; a failed customer notification does not undo it
                logger.error(f"Failed to notify customer for task {task_id}: {e}")
        return task

    def log_eta_update(
        self,
        order_id: str,
        eta: datetime,
        manager_id: str,
        now: Optional[datetime] = None,
    ) -> EtaActivity:
        """
        Record an ETA update activity for an order and apply it to the order's task.

        Raises:
            TaskNotFoundError: If no task for the order is assigned to the manager
            InvalidEtaError: If the ETA is invalid
        """
        task = self.task_store.find_by_order(order_id)
        # Managers only log ETAs for orders assigned to them
        if task is None or task.assigned_to != manager_id:
            raise TaskNotFoundError(order_id)
        updated = self.update_eta(task.task_id, eta, now=now)

        activity = EtaActivity(
            activity_id=str(uuid4()),
            order_id=order_id,
            manager_id=manager_id,
            estimated_delivery_time=updated.estimated_delivery_time,
        )
        self.activity_store.add_eta_activity(activity)
        logger.info(f"Logged ETA update activity {activity.activity_id} for order {order_id}")
        return activity

    def eta_history(self, order_id: str) -> List[EtaActivity]:
        return self.activity_store.list_eta_activities(order_id)

    @staticmethod
    def is_overdue(task: DeliveryTask, now: Optional[datetime] = None) -> bool:
        """True when an undelivered task's ETA has passed."""
        if task.estimated_delivery_time is None or task.status in COMPLETED_STATUSES:
            return False
        return task.time_remaining(now) == timedelta(0)
