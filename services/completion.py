"""
Completion Orchestrator

Completing a notification closes the row and, when it repeats, inserts the
next occurrence as a new row. Due values are never moved in place.

Order of writes:
1. mark the row completed              (primary, errors propagate)
2. resolve the effective recurrence    (subscription reminders inherit theirs)
3. Date basis with a recurrence        -> successor with the advanced date
4. otherwise, counter_step set         -> successor due at value + step
5. otherwise                           -> terminal, nothing inserted

A failed successor insert is logged and reported; the completion stands.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel

from models.notification import Notification, NotificationBasis, NotificationDraft, Recurrence
from services.errors import ObligationValidationError, RecordNotFoundError
from services.obligation_store import ObligationStore, utcnow
from services.recurrence import effective_recurrence, next_counter_value, next_due_date

logger = logging.getLogger(__name__)


class CompletionResult(BaseModel):
    success: bool
    notification: Notification
    successor: Optional[Notification] = None
    error: Optional[str] = None


def successor_draft(
    notification: Notification,
    recurrence: Recurrence,
    today: Optional[date] = None,
) -> Optional[NotificationDraft]:
    """Next occurrence of a completed notification, None when terminal."""
    template = notification.as_draft()

    if notification.notification_basis == NotificationBasis.DATE and recurrence != Recurrence.NONE:
        next_date = next_due_date(notification.initial_date, recurrence)
        return template.model_copy(update={"initial_date": next_date})

    if notification.counter_step and notification.initial_counter_value is not None:
        next_value = next_counter_value(notification.initial_counter_value, notification.counter_step)
        return template.model_copy(update={
            "initial_date": today or date.today(),
            "initial_counter_value": next_value,
        })

    return None


class CompletionOrchestrator:

    def __init__(self, store: ObligationStore):
        self.store = store

    async def complete_notification(
        self, user_id: str, notification_id: str, today: Optional[date] = None
    ) -> CompletionResult:
        notification = await self.store.get_notification(user_id, notification_id)
        if notification is None:
            raise RecordNotFoundError("notifications", notification_id)
        if notification.is_completed:
            raise ObligationValidationError(f"Notification {notification_id} is already completed")

        completed = await self.store.mark_notification_completed(user_id, notification_id, utcnow())
        if completed is None:
            # Closed by a concurrent request between the read and the write
            raise ObligationValidationError(f"Notification {notification_id} is already completed")
        logger.info(f"Completed notification {notification_id} for user {user_id}")

        result = CompletionResult(success=True, notification=completed)

        try:
            subscription = None
            if completed.subscription_id:
                subscription = await self.store.get_subscription(user_id, completed.subscription_id)
            recurrence = effective_recurrence(completed, subscription)

            draft = successor_draft(completed, recurrence, today)
            if draft is None:
                logger.info(f"Notification {notification_id} is terminal, no successor")
                return result

            result.successor = await self.store.insert_notification(user_id, draft)
            logger.info(
                f"Inserted successor {result.successor.id} for notification {notification_id} | "
                f"due={result.successor.due_value}"
            )
        except Exception as e:
            logger.error(f"Successor creation failed for notification {notification_id}: {e}")
            result.error = "Notification completed but the next occurrence could not be created"

        return result
