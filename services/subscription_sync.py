"""
Subscription Service

A recurring subscription owns one Date reminder notification. The reminder
carries recurrence "None" and inherits the subscription's schedule when it
is completed, so the open reminder may sit on a later cycle than the
subscription's initial_date. Edits keep that cycle unless the initial date
itself changes.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel

from models.notification import NotificationBasis, NotificationDraft, NotificationType, Recurrence
from models.subscription import Subscription, SubscriptionCreate
from services.errors import RecordNotFoundError
from services.notification_sync import SyncResult, cascade_parent_delete, reconcile_linked_notifications
from services.obligation_store import ObligationStore

logger = logging.getLogger(__name__)


class SubscriptionSaveResult(BaseModel):
    subscription: Subscription
    sync: Optional[SyncResult] = None
    warnings: List[str] = []


def desired_subscription_reminders(
    subscription: Subscription,
    due_date: Optional[date] = None,
) -> Dict[NotificationBasis, Optional[NotificationDraft]]:
    desired: Dict[NotificationBasis, Optional[NotificationDraft]] = {
        basis: None for basis in NotificationBasis
    }
    if subscription.is_recurring:
        desired[NotificationBasis.DATE] = NotificationDraft(
            aircraft_id=subscription.aircraft_id,
            description=subscription.subscription_name,
            notes=subscription.notes,
            type=NotificationType.SUBSCRIPTION,
            notification_basis=NotificationBasis.DATE,
            initial_date=due_date or subscription.initial_date,
            recurrence=Recurrence.NONE,
            subscription_id=subscription.id,
        )
    return desired


class SubscriptionService:

    def __init__(self, store: ObligationStore):
        self.store = store

    async def sync_reminders(
        self, user_id: str, subscription: Subscription, due_date: Optional[date] = None
    ) -> SyncResult:
        return await reconcile_linked_notifications(
            self.store,
            user_id,
            "subscription_id",
            subscription.id,
            desired_subscription_reminders(subscription, due_date),
        )

    async def create_subscription(self, user_id: str, data: SubscriptionCreate) -> SubscriptionSaveResult:
        subscription = await self.store.insert_subscription(user_id, data.model_dump())
        logger.info(f"Created subscription {subscription.id} for user {user_id}")
        return await self._sync(user_id, subscription)

    async def update_subscription(
        self, user_id: str, subscription_id: str, data: SubscriptionCreate
    ) -> SubscriptionSaveResult:
        existing = await self.store.get_subscription(user_id, subscription_id)
        if existing is None:
            raise RecordNotFoundError("subscriptions", subscription_id)

        subscription = await self.store.update_subscription(user_id, subscription_id, data.model_dump())
        if subscription is None:
            raise RecordNotFoundError("subscriptions", subscription_id)
        logger.info(f"Updated subscription {subscription_id} for user {user_id}")

        due_date = None
        if existing.initial_date == subscription.initial_date:
            due_date = await self._open_reminder_date(user_id, subscription_id)
        return await self._sync(user_id, subscription, due_date)

    async def delete_subscription(self, user_id: str, subscription_id: str) -> int:
        """Delete a subscription and its managed reminders; returns reminders deleted."""
        if not await self.store.delete_subscription(user_id, subscription_id):
            raise RecordNotFoundError("subscriptions", subscription_id)
        logger.info(f"Deleted subscription {subscription_id} for user {user_id}")
        try:
            return await cascade_parent_delete(self.store, user_id, "subscription_id", subscription_id)
        except Exception as e:
            logger.error(f"Reminder cascade for subscription {subscription_id} failed: {e}")
            return 0

    async def _open_reminder_date(self, user_id: str, subscription_id: str) -> Optional[date]:
        open_reminders = await self.store.list_notifications(
            user_id, sort="initial_date", subscription_id=subscription_id, is_completed=False, user_modified=False
        )
        return open_reminders[0].initial_date if open_reminders else None

    async def _sync(
        self, user_id: str, subscription: Subscription, due_date: Optional[date] = None
    ) -> SubscriptionSaveResult:
        result = SubscriptionSaveResult(subscription=subscription)
        try:
            result.sync = await self.sync_reminders(user_id, subscription, due_date)
        except Exception as e:
            logger.error(f"Reminder sync for subscription {subscription.id} failed: {e}")
            result.warnings.append("Subscription saved but its reminder could not be updated")
        return result
