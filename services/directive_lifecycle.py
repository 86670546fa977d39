"""
Directive Applicability / Lifecycle Rules

Decides which notification a directive needs and keeps it in step when the
directive is created, edited, completed or deleted.

Initial due type -> generated notification:
- Before Next Flight, At Next Inspection -> Date, due today
- By Date                                -> Date, due on initial_due_date
- By Calendar                            -> Date, base date + initial_due_months
- By Total Time (Hours)                  -> Counter, absolute or incremental target
- Other                                  -> none

Counter targets are resolved once, when the due fields are saved. An absolute
target below the current reading is rejected before anything is written.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ValidationError

from models.counters import CounterSnapshot
from models.directive import (
    AircraftDirectiveStatus,
    ComplianceEvent,
    ComplianceScope,
    CounterTargetMode,
    Directive,
    DirectiveCreate,
    DirectiveHistoryEntry,
    DirectiveStatus,
    DirectiveUpdate,
    HistoryAction,
    InitialDueType,
    SummaryComplianceStatus,
)
from models.notification import NotificationBasis, NotificationDraft, NotificationType
from services.errors import ObligationValidationError, RecordNotFoundError
from services.notification_sync import SyncResult, cascade_parent_delete, reconcile_linked_notifications
from services.obligation_store import ObligationStore
from services.recurrence import (
    add_months,
    anchored_next_due_counter,
    anchored_next_due_date,
    directive_basis,
)

logger = logging.getLogger(__name__)

DUE_TODAY_TYPES = (InitialDueType.BEFORE_NEXT_FLIGHT, InitialDueType.AT_NEXT_INSPECTION)

# Fields whose change requires resolving the counter target again
COUNTER_TARGET_FIELDS = {"initial_due_type", "initial_due_hours", "counter_target_mode", "counter_type"}

# Scopes where the owner may close the directive after a compliance
CONFIRMABLE_COMPLETION_SCOPES = (ComplianceScope.RECURRING, ComplianceScope.CONDITIONAL)


class DirectiveSaveResult(BaseModel):
    directive: Directive
    sync: Optional[SyncResult] = None
    warnings: List[str] = []


# ============================================================
# PURE RULES
# ============================================================

def resolve_counter_target(directive: DirectiveCreate, counters: CounterSnapshot) -> Optional[float]:
    """Absolute counter reading at which a By Total Time directive falls due."""
    if directive.initial_due_type != InitialDueType.BY_TOTAL_TIME:
        return None

    current = counters.value_for(directive.counter_type) or 0.0
    hours = directive.initial_due_hours or 0.0

    if directive.counter_target_mode == CounterTargetMode.INCREMENTAL:
        return current + hours

    if hours < current:
        raise ObligationValidationError(
            f"Due value {hours} is below the current {directive.counter_type.value} reading {current}"
        )
    return hours


def initial_due_date(directive: Directive, today: Optional[date] = None) -> Optional[date]:
    today = today or date.today()
    due_type = directive.initial_due_type

    if due_type in DUE_TODAY_TYPES:
        return today
    if due_type == InitialDueType.BY_DATE:
        return directive.initial_due_date
    if due_type == InitialDueType.BY_CALENDAR:
        if directive.initial_due_date is not None:
            return directive.initial_due_date
        base = directive.effective_date or (directive.created_at.date() if directive.created_at else today)
        return add_months(base, directive.initial_due_months or 0)
    return None


def generates_notifications(directive: Directive) -> bool:
    return (
        directive.directive_status == DirectiveStatus.ACTIVE
        and directive.compliance_scope != ComplianceScope.INFORMATIONAL_ONLY
        and directive_basis(directive) is not None
    )


def build_directive_notification(
    directive: Directive,
    today: Optional[date] = None,
    due_date: Optional[date] = None,
    due_counter: Optional[float] = None,
) -> Optional[NotificationDraft]:
    """
    Draft of the notification a directive needs. due_date / due_counter
    override the initial due value (used for anchored recurrences).
    """
    if not generates_notifications(directive):
        return None

    today = today or date.today()
    common = dict(
        aircraft_id=directive.aircraft_id,
        description=directive.label[:200],
        type=NotificationType.DIRECTIVES,
        directive_id=directive.id,
    )

    if directive_basis(directive) == NotificationBasis.COUNTER:
        target = due_counter if due_counter is not None else directive.initial_due_counter_value
        if target is None or directive.counter_type is None:
            return None
        return NotificationDraft(
            **common,
            notification_basis=NotificationBasis.COUNTER,
            initial_date=today,
            counter_type=directive.counter_type,
            initial_counter_value=target,
        )

    due = due_date or initial_due_date(directive, today)
    if due is None:
        return None
    return NotificationDraft(**common, notification_basis=NotificationBasis.DATE, initial_date=due)


def anchored_directive_notification(
    directive: Directive,
    event: ComplianceEvent,
    today: Optional[date] = None,
) -> Optional[NotificationDraft]:
    """Next notification of a Recurring directive, counted from the compliance."""
    if directive_basis(directive) == NotificationBasis.COUNTER:
        target = anchored_next_due_counter(directive, event.counter_value)
        if target is None:
            return None
        return build_directive_notification(directive, today, due_counter=target)

    next_date = anchored_next_due_date(directive, event.compliance_date)
    if next_date is None:
        return None
    return build_directive_notification(directive, today, due_date=next_date)


def desired_directive_notification(
    directive: Directive,
    summary: Optional[AircraftDirectiveStatus],
    today: Optional[date] = None,
) -> Optional[NotificationDraft]:
    """What the directive's single open notification should look like now."""
    complied = summary is not None and summary.compliance_status in (
        SummaryComplianceStatus.COMPLIED_ONCE,
        SummaryComplianceStatus.RECURRING_CURRENT,
    )
    if not complied:
        return build_directive_notification(directive, today)

    if directive.compliance_scope != ComplianceScope.RECURRING:
        # Complied and not recurring: nothing left to remind about
        return None
    if summary.next_due_basis == NotificationBasis.COUNTER and summary.next_due_counter_value is not None:
        return build_directive_notification(directive, today, due_counter=summary.next_due_counter_value)
    if summary.next_due_basis == NotificationBasis.DATE and summary.next_due_date is not None:
        return build_directive_notification(directive, today, due_date=summary.next_due_date)
    return None


def should_complete_directive(directive: Directive, requested: bool) -> bool:
    """One-Time directives close on compliance; Recurring/Conditional only on request."""
    if directive.compliance_scope == ComplianceScope.ONE_TIME:
        return True
    return requested and directive.compliance_scope in CONFIRMABLE_COMPLETION_SCOPES


# ============================================================
# SERVICE
# ============================================================

class DirectiveLifecycle:
    """Create / edit / complete / delete directives with their notifications"""

    def __init__(self, store: ObligationStore):
        self.store = store

    async def reconcile_directive_notifications(
        self, user_id: str, directive: Directive, today: Optional[date] = None
    ) -> SyncResult:
        summary = await self.store.get_directive_status(user_id, directive.id)
        draft = desired_directive_notification(directive, summary, today)
        desired: Dict[NotificationBasis, Optional[NotificationDraft]] = {
            basis: None for basis in NotificationBasis
        }
        if draft is not None:
            desired[draft.notification_basis] = draft
        return await reconcile_linked_notifications(self.store, user_id, "directive_id", directive.id, desired)

    async def create_directive(
        self, user_id: str, data: DirectiveCreate, today: Optional[date] = None
    ) -> DirectiveSaveResult:
        counters = await self.store.get_counters(user_id, data.aircraft_id)
        target = resolve_counter_target(data, counters)

        doc = data.model_dump()
        doc["initial_due_counter_value"] = target
        doc["archived"] = False
        directive = await self.store.insert_directive(user_id, doc)
        logger.info(f"Created directive {directive.id} ({directive.directive_code}) for user {user_id}")

        result = DirectiveSaveResult(directive=directive)
        await self._log_history(result, user_id, directive, HistoryAction.CREATE)

        try:
            result.sync = await self.reconcile_directive_notifications(user_id, directive, today)
        except Exception as e:
            logger.error(f"Notification generation failed for directive {directive.id}: {e}")
            result.warnings.append("Directive saved but its notification could not be generated")
        return result

    async def update_directive(
        self, user_id: str, directive_id: str, update: DirectiveUpdate, today: Optional[date] = None
    ) -> DirectiveSaveResult:
        existing = await self.store.get_directive(user_id, directive_id)
        if existing is None:
            raise RecordNotFoundError("directives", directive_id)

        changes = update.model_dump(exclude_unset=True)
        merged = {**existing.model_dump(), **changes}
        try:
            candidate = Directive(**merged)
        except ValidationError as e:
            raise ObligationValidationError(str(e)) from e

        if candidate.initial_due_type != InitialDueType.BY_TOTAL_TIME:
            changes["initial_due_counter_value"] = None
        elif COUNTER_TARGET_FIELDS & changes.keys() or existing.initial_due_counter_value is None:
            counters = await self.store.get_counters(user_id, existing.aircraft_id)
            changes["initial_due_counter_value"] = resolve_counter_target(candidate, counters)

        directive = await self.store.update_directive(user_id, directive_id, changes)
        if directive is None:
            raise RecordNotFoundError("directives", directive_id)

        result = DirectiveSaveResult(directive=directive)
        try:
            result.sync = await self.reconcile_directive_notifications(user_id, directive, today)
        except Exception as e:
            logger.error(f"Notification reconcile failed for directive {directive.id}: {e}")
            result.warnings.append("Directive saved but its notifications could not be reconciled")
        return result

    async def complete_directive(self, user_id: str, directive: Directive) -> int:
        """
        Close a directive and delete every linked notification, frozen ones
        included.
        """
        await self.store.update_directive(
            user_id, directive.id, {"directive_status": DirectiveStatus.COMPLETED}
        )
        deleted = await self.store.delete_notifications(user_id, directive_id=directive.id)
        logger.info(f"Directive {directive.id} completed | notifications_deleted={deleted}")
        return deleted

    async def delete_directive(self, user_id: str, directive_id: str) -> List[str]:
        """Delete a directive with its events and summary. Returns warnings."""
        directive = await self.store.get_directive(user_id, directive_id)
        if directive is None:
            raise RecordNotFoundError("directives", directive_id)

        # History entry precedes the delete
        holder = DirectiveSaveResult(directive=directive)
        await self._log_history(holder, user_id, directive, HistoryAction.DELETE)

        await self.store.delete_directive(user_id, directive_id)
        logger.info(f"Deleted directive {directive_id} for user {user_id}")

        try:
            await cascade_parent_delete(self.store, user_id, "directive_id", directive_id)
            await self.store.delete_compliance_events(user_id, directive_id=directive_id)
            await self.store.delete_directive_status(user_id, directive_id)
        except Exception as e:
            logger.error(f"Cascade after deleting directive {directive_id} failed: {e}")
            holder.warnings.append("Directive deleted but some linked records could not be removed")
        return holder.warnings

    async def _log_history(
        self, result: DirectiveSaveResult, user_id: str, directive: Directive, action: HistoryAction
    ) -> None:
        try:
            await self.store.append_history(DirectiveHistoryEntry(
                user_id=user_id,
                aircraft_id=directive.aircraft_id,
                directive_id=directive.id,
                directive_code=directive.directive_code,
                directive_title=directive.title,
                action_type=action,
            ))
        except Exception as e:
            logger.error(f"History append ({action.value}) failed for directive {directive.id}: {e}")
            result.warnings.append(f"{action.value} history entry could not be written")
