"""
Directive Compliance Pipeline

save_compliance records one compliance event and propagates it:

1. upsert the event                                   (primary)
2. append a Compliance history entry                  (when it newly counts)
3. rebuild the directive summary from Complied events
4. close the earliest-due managed notification and, for Recurring
   directives, create the next one anchored on the compliance
5. close the directive when its scope calls for it

Steps 2-5 are best-effort: failures are logged and returned as warnings, and
the next mutation's recompute repairs the summary.
"""

import logging
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from models.directive import (
    AircraftDirectiveStatus,
    ComplianceEvent,
    ComplianceEventStatus,
    ComplianceSaveRequest,
    ComplianceScope,
    Directive,
    DirectiveHistoryEntry,
    DirectiveStatus,
    HistoryAction,
)
from models.notification import Notification, NotificationBasis
from services.directive_lifecycle import (
    DirectiveLifecycle,
    anchored_directive_notification,
    should_complete_directive,
)
from services.errors import ObligationValidationError, RecordNotFoundError
from services.notification_sync import ensure_managed, reconcile_linked_notifications
from services.obligation_store import ObligationStore, utcnow
from services.recurrence import directive_basis

logger = logging.getLogger(__name__)


class ComplianceSaveResult(BaseModel):
    success: bool = True
    event: ComplianceEvent
    summary: Optional[AircraftDirectiveStatus] = None
    history_entry_id: Optional[str] = None
    completed_notification_id: Optional[str] = None
    next_notification_id: Optional[str] = None
    directive_completed: bool = False
    notifications_deleted: int = 0
    warnings: List[str] = []


class ComplianceDeleteResult(BaseModel):
    deleted: bool
    summary: Optional[AircraftDirectiveStatus] = None
    warnings: List[str] = []


def pick_notification_to_complete(notifications: List[Notification]) -> Optional[Notification]:
    """Earliest due value first, then oldest row, then id."""
    candidates = [n for n in notifications if not n.is_completed and not n.user_modified]
    if not candidates:
        return None

    def sort_key(n: Notification):
        due = n.due_value
        due_key = due.toordinal() if isinstance(due, date) else (due if due is not None else float("inf"))
        # Dates and counter readings never share a basis bucket
        basis_rank = 0 if n.notification_basis == NotificationBasis.DATE else 1
        created = n.created_at.timestamp() if n.created_at else float("inf")
        return (basis_rank, due_key, created, n.id)

    return min(candidates, key=sort_key)


class DirectiveComplianceService:

    def __init__(self, store: ObligationStore):
        self.store = store
        self.lifecycle = DirectiveLifecycle(store)

    async def save_compliance(
        self,
        user_id: str,
        directive_id: str,
        request: ComplianceSaveRequest,
        today: Optional[date] = None,
    ) -> ComplianceSaveResult:
        directive = await self.store.get_directive(user_id, directive_id)
        if directive is None:
            raise RecordNotFoundError("directives", directive_id)
        if request.event.directive_id != directive_id:
            raise ObligationValidationError("Compliance event belongs to another directive")

        existing = None
        if request.event_id:
            existing = await self.store.get_compliance_event(user_id, request.event_id)
            if existing is None or existing.directive_id != directive_id:
                raise RecordNotFoundError("maintenance_directive_compliance", request.event_id)

        data = await self._event_data(user_id, directive, request)

        # 1. Primary write
        if existing:
            event = await self.store.update_compliance_event(user_id, existing.id, data)
            if event is None:
                raise RecordNotFoundError("maintenance_directive_compliance", existing.id)
        else:
            event = await self.store.insert_compliance_event(user_id, data)
        logger.info(
            f"Saved compliance event {event.id} | directive={directive_id} | "
            f"status={event.compliance_status.value} | date={event.compliance_date}"
        )

        was_complied = existing is not None and existing.is_complied
        newly_complied = event.is_complied and not was_complied
        date_changed = existing is not None and existing.compliance_date != event.compliance_date
        will_complete = (
            event.is_complied
            and directive.directive_status != DirectiveStatus.COMPLETED
            and should_complete_directive(directive, request.mark_directive_completed)
        )

        result = ComplianceSaveResult(event=event)

        # 2. History
        if newly_complied or (event.is_complied and date_changed):
            await self._append_history(result, user_id, directive, event)

        # 3. Summary
        try:
            result.summary = await self.store.with_consistency_recompute(user_id, directive)
        except Exception as e:
            logger.error(f"Summary recompute failed for directive {directive_id}: {e}")
            result.warnings.append("Compliance saved but the directive summary could not be updated")

        # 4. Notifications
        try:
            if newly_complied:
                await self._advance_notifications(result, user_id, directive, event, will_complete, today)
            elif event.is_complied and date_changed and directive.compliance_scope == ComplianceScope.RECURRING:
                # Re-anchor the open notification on the corrected date
                await self.lifecycle.reconcile_directive_notifications(user_id, directive, today)
            elif was_complied and not event.is_complied:
                # Compliance withdrawn: follow the rebuilt summary
                await self.lifecycle.reconcile_directive_notifications(user_id, directive, today)
        except Exception as e:
            logger.error(f"Notification update after compliance {event.id} failed: {e}")
            result.warnings.append("Compliance saved but linked notifications could not be updated")

        # 5. Directive completion
        if will_complete:
            try:
                result.notifications_deleted = await self.lifecycle.complete_directive(user_id, directive)
                result.directive_completed = True
            except Exception as e:
                logger.error(f"Completing directive {directive_id} failed: {e}")
                result.warnings.append("Compliance saved but the directive could not be marked completed")

        return result

    async def delete_compliance_event(self, user_id: str, event_id: str) -> ComplianceDeleteResult:
        event = await self.store.get_compliance_event(user_id, event_id)
        if event is None:
            raise RecordNotFoundError("maintenance_directive_compliance", event_id)

        deleted = await self.store.delete_compliance_event(user_id, event_id)
        logger.info(f"Deleted compliance event {event_id} | directive={event.directive_id}")

        result = ComplianceDeleteResult(deleted=deleted)
        summary = await self.recompute_summary(result.warnings, user_id, event.directive_id)
        result.summary = summary
        return result

    async def recompute_summary(
        self, warnings: List[str], user_id: str, directive_id: str
    ) -> Optional[AircraftDirectiveStatus]:
        """Best-effort summary rebuild used after events disappear."""
        try:
            directive = await self.store.get_directive(user_id, directive_id)
            if directive is None:
                return None
            return await self.store.with_consistency_recompute(user_id, directive)
        except Exception as e:
            logger.error(f"Summary recompute failed for directive {directive_id}: {e}")
            warnings.append(f"Summary for directive {directive_id} could not be updated")
            return None

    async def _event_data(self, user_id: str, directive: Directive, request: ComplianceSaveRequest) -> dict:
        data = request.event.model_dump()
        data["aircraft_id"] = directive.aircraft_id

        if directive_basis(directive) == NotificationBasis.COUNTER and directive.counter_type is not None:
            if data.get("counter_type") is None:
                data["counter_type"] = directive.counter_type
            if data.get("counter_value") is None and data["compliance_status"] == ComplianceEventStatus.COMPLIED:
                counters = await self.store.get_counters(user_id, directive.aircraft_id)
                data["counter_value"] = counters.value_for(data["counter_type"])
        return data

    async def _append_history(
        self, result: ComplianceSaveResult, user_id: str, directive: Directive, event: ComplianceEvent
    ) -> None:
        try:
            previous = await self.store.get_directive_status(user_id, directive.id)
            first_date = event.compliance_date
            if previous and previous.first_compliance_date and previous.first_compliance_date < first_date:
                first_date = previous.first_compliance_date

            entry = await self.store.append_history(DirectiveHistoryEntry(
                user_id=user_id,
                aircraft_id=directive.aircraft_id,
                directive_id=directive.id,
                directive_code=directive.directive_code,
                directive_title=directive.title,
                action_type=HistoryAction.COMPLIANCE,
                compliance_status=event.compliance_status.value,
                first_compliance_date=first_date,
                last_compliance_date=event.compliance_date,
                notes=event.owner_notes,
            ))
            result.history_entry_id = entry.id
        except Exception as e:
            logger.error(f"Compliance history append failed for directive {directive.id}: {e}")
            result.warnings.append("Compliance saved but the history entry could not be written")

    async def _advance_notifications(
        self,
        result: ComplianceSaveResult,
        user_id: str,
        directive: Directive,
        event: ComplianceEvent,
        will_complete: bool,
        today: Optional[date],
    ) -> None:
        linked = await self.store.list_notifications(
            user_id, directive_id=directive.id, is_completed=False, user_modified=False
        )
        target = pick_notification_to_complete(linked)
        if target is not None:
            ensure_managed(target)
            closed = await self.store.mark_notification_completed(user_id, target.id, utcnow())
            if closed is not None:
                result.completed_notification_id = closed.id
                logger.info(f"Closed notification {closed.id} on compliance {event.id}")

        if will_complete or directive.compliance_scope != ComplianceScope.RECURRING:
            return

        draft = anchored_directive_notification(directive, event, today)
        if draft is None:
            logger.info(f"Directive {directive.id} has no repeat interval, no next notification")
            return

        desired = {basis: None for basis in NotificationBasis}
        desired[draft.notification_basis] = draft
        sync = await reconcile_linked_notifications(self.store, user_id, "directive_id", directive.id, desired)
        if sync.inserted:
            result.next_notification_id = sync.inserted[0]
        elif sync.updated:
            result.next_notification_id = sync.updated[0]
