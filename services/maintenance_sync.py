"""
Maintenance Log Service

A maintenance log is the primary record of work performed. Saving one keeps
two families of dependent records in step:

- reminder notifications for recurring tasks (one per basis; Mixed -> both)
- directive compliance events for the directives the work complied with

Interval type -> desired notifications:
    None      -> none
    Calendar  -> Date row   (next_due_date, or date_performed + interval_months)
    Hours     -> Counter row (next_due_hours, or counter at event + interval_hours)
    Mixed     -> Date row + Counter row

Completing a reminder closes it and may open a successor on a later cycle.
An edit that leaves the due-driving fields alone keeps that cycle, and a due
value whose reminder was already completed is never reopened.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel

from models.directive import ComplianceEventCreate, ComplianceSaveRequest
from models.maintenance import IntervalType, MaintenanceLog, MaintenanceLogCreate
from models.notification import Notification, NotificationBasis, NotificationDraft, NotificationType
from services.directive_compliance import ComplianceSaveResult, DirectiveComplianceService
from services.errors import RecordNotFoundError
from services.notification_sync import SyncResult, cascade_parent_delete, reconcile_linked_notifications
from services.obligation_store import ObligationStore
from services.recurrence import add_months, recurrence_for_months

logger = logging.getLogger(__name__)

DATE_INTERVALS = (IntervalType.CALENDAR, IntervalType.MIXED)
COUNTER_INTERVALS = (IntervalType.HOURS, IntervalType.MIXED)

# Log fields the reminders' due values are derived from
DUE_FIELDS = (
    "date_performed",
    "is_recurring_task",
    "interval_type",
    "interval_hours",
    "interval_months",
    "interval_counter_type",
    "next_due_hours",
    "next_due_date",
    "hobbs_at_event",
    "tach_at_event",
    "airframe_total_time",
    "engine_total_time",
    "prop_total_time",
)


class MaintenanceLogSaveResult(BaseModel):
    log: MaintenanceLog
    sync: Optional[SyncResult] = None
    compliance: List[ComplianceSaveResult] = []
    warnings: List[str] = []


class MaintenanceLogDeleteResult(BaseModel):
    deleted: bool
    notifications_deleted: int = 0
    events_deleted: int = 0
    warnings: List[str] = []


def desired_log_notifications(log: MaintenanceLog) -> Dict[NotificationBasis, Optional[NotificationDraft]]:
    desired: Dict[NotificationBasis, Optional[NotificationDraft]] = {
        basis: None for basis in NotificationBasis
    }
    if not log.is_recurring_task or log.interval_type == IntervalType.NONE:
        return desired

    common = dict(
        aircraft_id=log.aircraft_id,
        description=log.entry_title,
        type=NotificationType.MAINTENANCE,
        maintenance_log_id=log.id,
    )

    if log.interval_type in DATE_INTERVALS:
        due = log.next_due_date
        if due is None and log.interval_months:
            due = add_months(log.date_performed, log.interval_months)
        if due is not None:
            desired[NotificationBasis.DATE] = NotificationDraft(
                **common,
                notification_basis=NotificationBasis.DATE,
                initial_date=due,
                recurrence=recurrence_for_months(log.interval_months),
            )

    if log.interval_type in COUNTER_INTERVALS:
        target = log.next_due_hours
        if target is None and log.interval_hours:
            target = log.counter_at_event(log.interval_counter_type) + log.interval_hours
        if target is not None:
            desired[NotificationBasis.COUNTER] = NotificationDraft(
                **common,
                notification_basis=NotificationBasis.COUNTER,
                initial_date=log.date_performed,
                counter_type=log.interval_counter_type,
                initial_counter_value=target,
                counter_step=log.interval_hours or None,
            )

    return desired


def due_fields_changed(before: MaintenanceLog, after: MaintenanceLog) -> bool:
    return any(getattr(before, field) != getattr(after, field) for field in DUE_FIELDS)


def with_due_of(draft: NotificationDraft, row: Notification) -> NotificationDraft:
    """Copy of the draft carrying the due value of an existing row."""
    if draft.notification_basis == NotificationBasis.COUNTER:
        return draft.model_copy(update={
            "initial_date": row.initial_date,
            "initial_counter_value": row.initial_counter_value,
        })
    return draft.model_copy(update={"initial_date": row.initial_date})


def respect_completed_cycles(
    desired: Dict[NotificationBasis, Optional[NotificationDraft]],
    linked: List[Notification],
    keep_cycle: bool,
) -> Dict[NotificationBasis, Optional[NotificationDraft]]:
    """
    Adjust the desired reminders against the rows already linked to a log:

    - open managed row, keep_cycle            -> keep its due value
    - open managed row, due already completed -> keep its due value
    - no open row, due already completed      -> nothing to insert
    """
    adjusted = dict(desired)
    for basis, draft in desired.items():
        if draft is None:
            continue
        rows = [n for n in linked if n.notification_basis == basis]
        open_rows = [n for n in rows if not n.is_completed and not n.user_modified]
        completed_dues = {n.due_value for n in rows if n.is_completed}
        already_completed = draft.due_value in completed_dues

        if open_rows:
            if keep_cycle or already_completed:
                adjusted[basis] = with_due_of(draft, open_rows[0])
        elif already_completed:
            adjusted[basis] = None
    return adjusted


class MaintenanceLogService:

    def __init__(self, store: ObligationStore):
        self.store = store
        self.compliance = DirectiveComplianceService(store)

    async def sync_maintenance_log_notifications(
        self, user_id: str, log: MaintenanceLog, keep_cycle: bool = False
    ) -> SyncResult:
        linked = await self.store.list_notifications(user_id, sort="created_at", maintenance_log_id=log.id)
        desired = respect_completed_cycles(desired_log_notifications(log), linked, keep_cycle)
        return await reconcile_linked_notifications(self.store, user_id, "maintenance_log_id", log.id, desired)

    async def create_log(
        self, user_id: str, data: MaintenanceLogCreate, today: Optional[date] = None
    ) -> MaintenanceLogSaveResult:
        log = await self.store.insert_maintenance_log(user_id, data.model_dump())
        logger.info(f"Created maintenance log {log.id} ({log.entry_title}) for user {user_id}")
        return await self._propagate(user_id, log, today)

    async def update_log(
        self, user_id: str, log_id: str, data: MaintenanceLogCreate, today: Optional[date] = None
    ) -> MaintenanceLogSaveResult:
        existing = await self.store.get_maintenance_log(user_id, log_id)
        if existing is None:
            raise RecordNotFoundError("maintenance_logs", log_id)

        log = await self.store.update_maintenance_log(user_id, log_id, data.model_dump())
        if log is None:
            raise RecordNotFoundError("maintenance_logs", log_id)
        logger.info(f"Updated maintenance log {log_id} for user {user_id}")

        keep_cycle = not due_fields_changed(existing, log)
        result = await self._propagate(user_id, log, today, keep_cycle)

        kept = {link.directive_id for link in log.directive_compliance}
        removed = [
            link.directive_id for link in existing.directive_compliance if link.directive_id not in kept
        ]
        for directive_id in removed:
            try:
                await self.store.delete_compliance_events(
                    user_id, directive_id=directive_id, maintenance_log_id=log_id
                )
                logger.info(f"Removed compliance of directive {directive_id} from log {log_id}")
            except Exception as e:
                logger.error(f"Removing compliance of directive {directive_id} from log {log_id} failed: {e}")
                result.warnings.append(f"Compliance for directive {directive_id} could not be removed")
                continue
            await self.compliance.recompute_summary(result.warnings, user_id, directive_id)

        return result

    async def delete_log(self, user_id: str, log_id: str) -> MaintenanceLogDeleteResult:
        log = await self.store.get_maintenance_log(user_id, log_id)
        if log is None:
            raise RecordNotFoundError("maintenance_logs", log_id)

        deleted = await self.store.delete_maintenance_log(user_id, log_id)
        logger.info(f"Deleted maintenance log {log_id} for user {user_id}")
        result = MaintenanceLogDeleteResult(deleted=deleted)

        try:
            result.notifications_deleted = await cascade_parent_delete(
                self.store, user_id, "maintenance_log_id", log_id
            )
        except Exception as e:
            logger.error(f"Notification cascade for log {log_id} failed: {e}")
            result.warnings.append("Linked notifications could not be removed")

        try:
            events = await self.store.list_compliance_events(user_id, maintenance_log_id=log_id)
            result.events_deleted = await self.store.delete_compliance_events(user_id, maintenance_log_id=log_id)
        except Exception as e:
            logger.error(f"Compliance cascade for log {log_id} failed: {e}")
            result.warnings.append("Linked compliance events could not be removed")
            return result

        for directive_id in sorted({e.directive_id for e in events}):
            await self.compliance.recompute_summary(result.warnings, user_id, directive_id)

        return result

    async def _propagate(
        self, user_id: str, log: MaintenanceLog, today: Optional[date], keep_cycle: bool = False
    ) -> MaintenanceLogSaveResult:
        result = MaintenanceLogSaveResult(log=log)

        try:
            result.sync = await self.sync_maintenance_log_notifications(user_id, log, keep_cycle)
        except Exception as e:
            logger.error(f"Notification sync for maintenance log {log.id} failed: {e}")
            result.warnings.append("Log saved but its reminders could not be updated")

        for link in log.directive_compliance:
            try:
                saved = await self._save_link(user_id, log, link, today)
            except Exception as e:
                logger.error(f"Compliance for directive {link.directive_id} from log {log.id} failed: {e}")
                result.warnings.append(f"Compliance for directive {link.directive_id} could not be recorded")
                continue
            result.compliance.append(saved)
            result.warnings.extend(saved.warnings)

        return result

    async def _save_link(self, user_id: str, log: MaintenanceLog, link, today: Optional[date]) -> ComplianceSaveResult:
        existing = await self.store.list_compliance_events(
            user_id, directive_id=link.directive_id, maintenance_log_id=log.id
        )
        counter_value = link.counter_value
        if counter_value is None and link.counter_type is not None:
            counter_value = log.counter_at_event(link.counter_type)

        request = ComplianceSaveRequest(
            event=ComplianceEventCreate(
                directive_id=link.directive_id,
                compliance_date=log.date_performed,
                compliance_status=link.compliance_status,
                counter_type=link.counter_type,
                counter_value=counter_value,
                owner_notes=link.owner_notes,
                compliance_links=link.compliance_links,
                maintenance_log_id=log.id,
            ),
            event_id=existing[0].id if existing else None,
            mark_directive_completed=link.mark_directive_completed,
        )
        return await self.compliance.save_compliance(user_id, link.directive_id, request, today)
