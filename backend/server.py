from fastapi import FastAPI, APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
import logging
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone

from common.auth import DEMO_TOKENS, current_manager_id
from common.errors import TaskNotFoundError
from common.settings import load_settings
from delivery import DeliveryTaskService, TaskStatus
from delivery.eta import parse_eta_form
from notifications import NotificationCleanupScheduler, NotificationService, NotificationType
from stores import get_stores

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = load_settings()
if settings.uses_memory_store and not settings.api_tokens:
    settings.api_tokens = dict(DEMO_TOKENS)
    logger.info(f"No DELIVERY_API_TOKENS set, using demo tokens ({settings.mode} mode)")

# Create the main app
app = FastAPI(title="Bookstore Delivery API")
app.state.settings = settings

# Create routers
api_router = APIRouter(prefix="/api")

_cleanup_scheduler: Optional[NotificationCleanupScheduler] = None


def get_notification_service() -> NotificationService:
    """NotificationService over the active store set."""
    return NotificationService(get_stores().notifications, tz=app.state.settings.tzinfo)


def get_task_service() -> DeliveryTaskService:
    """DeliveryTaskService over the active store set."""
    stores = get_stores()
    return DeliveryTaskService(
        stores.tasks,
        stores.activities,
        NotificationService(stores.notifications, tz=app.state.settings.tzinfo),
    )

# ==================== Models ====================

class StatusUpdateRequest(BaseModel):
    status: TaskStatus
    notes: Optional[str] = None
    failure_reason: Optional[str] = None


class EtaForm(BaseModel):
    date: str = Field(..., description="DD/MM/YYYY")
    time: str = Field(..., description="HH:MM (24h)")


class EtaFormRequest(BaseModel):
    eta: EtaForm


class EtaActivityRequest(BaseModel):
    order_id: str
    estimated_delivery_time: datetime


class HandoverRequest(BaseModel):
    notes: Optional[str] = None


# ==================== Helpers ====================

def _http_error(e: Exception, action: str) -> HTTPException:
    """Translate a service error into an HTTPException."""
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        logger.info(f"Rejected {action}: {e}")
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {e}")
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


def _owned_task(service: DeliveryTaskService, task_id: str, manager_id: str):
    """Fetch a task, hiding tasks assigned to other managers."""
    task = service.get_task(task_id)
    if task.assigned_to != manager_id:
        raise TaskNotFoundError(task_id)
    return task


def _owned_notification(service: NotificationService, notification_id: str, manager_id: str):
    notification = service.get_notification(notification_id)
    if notification.recipient_id != manager_id:
        raise HTTPException(
            status_code=404,
            detail=f"Notification with ID {notification_id} does not exist",
        )
    return notification


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Error bodies always carry an `error` field for the mobile client."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail, "detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

# ==================== API Routes ====================

@api_router.get("/health")
async def health_check():
    return {
        "status": "ok",
        "mode": get_stores().mode,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

# ==================== Delivery Task Endpoints ====================

@api_router.get("/delivery/tasks/")
async def list_tasks(
    status: Optional[TaskStatus] = None,
    manager_id: str = Depends(current_manager_id),
):
    """List the tasks assigned to the authenticated delivery manager."""
    try:
        service = get_task_service()
        tasks = service.list_tasks(manager_id, status)
        return {
            "success": True,
            "tasks": [t.to_json() for t in tasks],
            "counts": service.task_counts(manager_id),
        }
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "listing tasks")


@api_router.get("/delivery/tasks/{task_id}/")
async def get_task(task_id: str, manager_id: str = Depends(current_manager_id)):
    try:
        return _owned_task(get_task_service(), task_id, manager_id).to_json()
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "fetching task")


@api_router.patch("/delivery/tasks/{task_id}/update-status/")
async def update_task_status(
    task_id: str,
    request: StatusUpdateRequest,
    manager_id: str = Depends(current_manager_id),
):
    """Move a task through its lifecycle (accept, start, deliver, complete, fail, retry)."""
    try:
        service = get_task_service()
        _owned_task(service, task_id, manager_id)
        task = service.update_status(
            task_id, request.status, notes=request.notes, failure_reason=request.failure_reason
        )
        return {
            "success": True,
            "message": f"Task status updated to {task.status.value}",
            "task": task.to_json(),
        }
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "updating task status")


@api_router.put("/delivery/tasks/{task_id}/eta/")
async def update_task_eta(
    task_id: str,
    request: EtaFormRequest,
    manager_id: str = Depends(current_manager_id),
):
    """
    Set a task's ETA from the manager's date/time form.

    The form values are read in the configured delivery timezone.
    """
    try:
        service = get_task_service()
        _owned_task(service, task_id, manager_id)
        eta = parse_eta_form(request.eta.date, request.eta.time, app.state.settings.tzinfo)
        task = service.update_eta(task_id, eta)
        return {"success": True, "message": "ETA updated successfully", "task": task.to_json()}
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "updating ETA")


@api_router.post("/delivery/tasks/{task_id}/pickup/")
async def confirm_pickup(
    task_id: str,
    request: Optional[HandoverRequest] = None,
    manager_id: str = Depends(current_manager_id),
):
    try:
        service = get_task_service()
        _owned_task(service, task_id, manager_id)
        task = service.confirm_pickup(task_id, notes=request.notes if request else None)
        return {"success": True, "message": "Pickup confirmed", "task": task.to_json()}
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "confirming pickup")


@api_router.post("/delivery/tasks/{task_id}/handover/")
async def confirm_handover(
    task_id: str,
    request: Optional[HandoverRequest] = None,
    manager_id: str = Depends(current_manager_id),
):
    try:
        service = get_task_service()
        _owned_task(service, task_id, manager_id)
        task = service.confirm_handover(task_id, notes=request.notes if request else None)
        return {"success": True, "message": "Delivery confirmed", "task": task.to_json()}
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "confirming handover")


@api_router.post("/delivery/activities/log/eta/", status_code=201)
async def log_eta_activity(
    request: EtaActivityRequest,
    manager_id: str = Depends(current_manager_id),
):
    """Record an ETA update activity and apply the ETA to the order's task."""
    try:
        activity = get_task_service().log_eta_update(
            request.order_id, request.estimated_delivery_time, manager_id
        )
        return {"success": True, "activity": activity.to_json()}
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "logging ETA update")

# ==================== Notification Endpoints ====================

@api_router.get("/delivery/notifications/")
async def list_notifications(
    limit: Optional[int] = Query(None, ge=0),
    offset: Optional[int] = Query(None, ge=0),
    is_read: Optional[bool] = None,
    notification_type: Optional[NotificationType] = None,
    manager_id: str = Depends(current_manager_id),
):
    try:
        service = get_notification_service()
        notifications = service.list_notifications(
            manager_id,
            is_read=is_read,
            notification_type=notification_type,
            limit=limit,
            offset=offset,
        )
        return {
            "success": True,
            "notifications": [n.to_json() for n in notifications],
            "unread_count": service.unread_count(manager_id),
        }
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "listing notifications")


@api_router.get("/delivery/notifications/unread-count/")
async def unread_count(manager_id: str = Depends(current_manager_id)):
    try:
        return {"success": True, "unread_count": get_notification_service().unread_count(manager_id)}
    except Exception as e:
        raise _http_error(e, "counting unread notifications")


@api_router.post("/delivery/notifications/mark-all-read/")
async def mark_all_read(manager_id: str = Depends(current_manager_id)):
    try:
        count = get_notification_service().mark_all_as_read(manager_id)
        return {"success": True, "updated_count": count}
    except Exception as e:
        raise _http_error(e, "marking notifications as read")


@api_router.post("/delivery/notifications/{notification_id}/mark-read/")
async def mark_read(notification_id: str, manager_id: str = Depends(current_manager_id)):
    try:
        service = get_notification_service()
        _owned_notification(service, notification_id, manager_id)
        notification = service.mark_as_read(notification_id)
        return {"success": True, "notification": notification.to_json()}
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "marking notification as read")


# Declared before /notifications/{notification_id}/ so "delete_all" is not taken as an id
@api_router.delete("/notifications/delete_all/")
async def delete_all_notifications(manager_id: str = Depends(current_manager_id)):
    try:
        count = get_notification_service().delete_all(manager_id)
        return {"success": True, "deleted_count": count}
    except Exception as e:
        raise _http_error(e, "deleting notifications")


@api_router.delete("/notifications/{notification_id}/", status_code=204)
async def delete_notification(notification_id: str, manager_id: str = Depends(current_manager_id)):
    try:
        service = get_notification_service()
        _owned_notification(service, notification_id, manager_id)
        service.delete_notification(notification_id)
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "deleting notification")


# Add CORS middleware first, before including router
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers in the main app
app.include_router(api_router)

@app.on_event("startup")
async def startup_cleanup_scheduler():
    global _cleanup_scheduler
    stores = get_stores()
    logger.info(f"Delivery API starting in {stores.mode} mode")
    _cleanup_scheduler = NotificationCleanupScheduler(
        get_notification_service(),
        retention_days=app.state.settings.retention_days,
        interval_minutes=app.state.settings.cleanup_interval_minutes,
    )
    _cleanup_scheduler.start()

@app.on_event("shutdown")
async def shutdown_cleanup_scheduler():
    if _cleanup_scheduler is not None:
        await _cleanup_scheduler.stop()
