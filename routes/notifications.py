"""
Notification Routes

User CRUD over notifications, completion with recurrence, and the
per-aircraft alert view.
"""

from fastapi import APIRouter, Depends, status
from typing import List, Optional
from database.mongodb import get_database
from services.auth_deps import get_current_user
from services.completion import CompletionOrchestrator
from services.errors import ComplianceEngineError, to_http_exception
from services.notification_service import NotificationService
from services.obligation_store import ObligationStore
from models.notification import NotificationCreate, NotificationUpdate
from models.user import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_notification(
    notification: NotificationCreate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        created = await NotificationService(ObligationStore(db)).create_notification(current_user.id, notification)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return created.model_dump()


@router.get("", response_model=List[dict])
async def list_notifications(
    aircraft_id: Optional[str] = None,
    include_completed: bool = False,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Open notifications by due date; completed ones on request"""
    notifications = await NotificationService(ObligationStore(db)).list_notifications(
        current_user.id, aircraft_id, include_completed
    )
    return [n.model_dump() for n in notifications]


@router.get("/alerts/{aircraft_id}", response_model=dict)
async def get_aircraft_alerts(
    aircraft_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Open notifications of an aircraft with their alert state"""
    alerts = await NotificationService(ObligationStore(db)).aircraft_alerts(current_user.id, aircraft_id)
    return alerts.model_dump()


@router.get("/{notification_id}", response_model=dict)
async def get_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        notification = await NotificationService(ObligationStore(db)).get_notification(
            current_user.id, notification_id
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return notification.model_dump()


@router.put("/{notification_id}", response_model=dict)
async def update_notification(
    notification_id: str,
    update: NotificationUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Edit a notification. Generated rows become frozen."""
    try:
        updated = await NotificationService(ObligationStore(db)).update_notification(
            current_user.id, notification_id, update
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return updated.model_dump()


@router.delete("/{notification_id}", response_model=dict)
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    try:
        await NotificationService(ObligationStore(db)).delete_notification(current_user.id, notification_id)
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return {"message": "Notification deleted successfully"}


@router.post("/{notification_id}/complete", response_model=dict)
async def complete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_database)
):
    """Close a notification and create its next occurrence when it repeats"""
    try:
        result = await CompletionOrchestrator(ObligationStore(db)).complete_notification(
            current_user.id, notification_id
        )
    except ComplianceEngineError as e:
        raise to_http_exception(e)
    return result.model_dump()
