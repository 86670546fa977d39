"""
User-facing notification operations.

Rows created here are authored by the user. Editing a generated row freezes
it: from then on the parent record's automation leaves it alone.
"""

import logging
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from models.notification import (
    AircraftAlertsResponse,
    Notification,
    NotificationBase,
    NotificationCreate,
    NotificationDraft,
    NotificationUpdate,
    NotificationWithAlert,
)
from services.alert_evaluator import evaluate_alert, has_active_alert
from services.counter_snapshot import CounterSnapshotProvider
from services.errors import ObligationValidationError, RecordNotFoundError
from services.obligation_store import ObligationStore

logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, store: ObligationStore):
        self.store = store

    async def create_notification(self, user_id: str, data: NotificationCreate) -> Notification:
        if data.equipment_id and await self.store.get_equipment(user_id, data.equipment_id) is None:
            raise RecordNotFoundError("equipment", data.equipment_id)
        notification = await self.store.insert_notification(user_id, NotificationDraft(**data.model_dump()))
        logger.info(f"Created notification {notification.id} for user {user_id}")
        return notification

    async def list_notifications(
        self, user_id: str, aircraft_id: Optional[str] = None, include_completed: bool = False
    ) -> List[Notification]:
        filters = {}
        if aircraft_id:
            filters["aircraft_id"] = aircraft_id
        if not include_completed:
            filters["is_completed"] = False
        return await self.store.list_notifications(user_id, sort="initial_date", **filters)

    async def get_notification(self, user_id: str, notification_id: str) -> Notification:
        notification = await self.store.get_notification(user_id, notification_id)
        if notification is None:
            raise RecordNotFoundError("notifications", notification_id)
        return notification

    async def update_notification(
        self, user_id: str, notification_id: str, update: NotificationUpdate
    ) -> Notification:
        existing = await self.get_notification(user_id, notification_id)
        changes = update.model_dump(exclude_unset=True)
        if not changes:
            return existing

        merged = {**existing.model_dump(include=set(NotificationBase.model_fields)), **changes}
        try:
            NotificationBase(**merged)
        except ValidationError as e:
            raise ObligationValidationError(str(e)) from e

        if existing.is_generated and not existing.user_modified:
            changes["user_modified"] = True
            logger.info(f"Notification {notification_id} edited by user, now frozen")

        updated = await self.store.update_notification(user_id, notification_id, changes)
        if updated is None:
            raise RecordNotFoundError("notifications", notification_id)
        return updated

    async def delete_notification(self, user_id: str, notification_id: str) -> None:
        existing = await self.get_notification(user_id, notification_id)
        if existing.subscription_id:
            raise ObligationValidationError(
                "Subscription reminders are managed from the subscription and cannot be deleted directly"
            )
        await self.store.delete_notification(user_id, notification_id)
        logger.info(f"Deleted notification {notification_id} for user {user_id}")

    async def aircraft_alerts(
        self, user_id: str, aircraft_id: str, today: Optional[date] = None
    ) -> AircraftAlertsResponse:
        notifications = await self.list_notifications(user_id, aircraft_id)
        counters = await CounterSnapshotProvider(self.store, user_id).get_counters(aircraft_id)

        return AircraftAlertsResponse(
            aircraft_id=aircraft_id,
            notifications=[
                NotificationWithAlert(notification=n, alert=evaluate_alert(n, counters, today))
                for n in notifications
            ],
            any_active_alert=has_active_alert(notifications, counters, today),
        )
