"""
Recurrence Calculator

Next due values for notifications and recurring directives.

- Named recurrences are fixed offsets from the current due date.
- Counter steps add to the current due reading.
- Recurring directives anchor to the recorded compliance, so late
  compliance moves the whole schedule forward.
"""

from datetime import date, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from models.directive import ComplianceScope, Directive, InitialDueType
from models.notification import Notification, NotificationBasis, Recurrence
from models.subscription import Subscription


RECURRENCE_OFFSETS = {
    Recurrence.WEEKLY: timedelta(days=7),
    Recurrence.BI_MONTHLY: relativedelta(months=2),
    Recurrence.MONTHLY: relativedelta(months=1),
    Recurrence.QUARTERLY: relativedelta(months=3),
    Recurrence.SEMI_ANNUAL: relativedelta(months=6),
    Recurrence.YEARLY: relativedelta(months=12),
}

# Month intervals that map onto a named recurrence
MONTHS_TO_RECURRENCE = {
    1: Recurrence.MONTHLY,
    2: Recurrence.BI_MONTHLY,
    3: Recurrence.QUARTERLY,
    6: Recurrence.SEMI_ANNUAL,
    12: Recurrence.YEARLY,
}


def next_due_date(current: date, recurrence: Recurrence) -> Optional[date]:
    """Next occurrence of a date-based recurrence, None when it does not repeat."""
    offset = RECURRENCE_OFFSETS.get(Recurrence(recurrence))
    if offset is None:
        return None
    return current + offset


def next_counter_value(current: float, step: Optional[float]) -> Optional[float]:
    if not step or step <= 0:
        return None
    return current + step


def next_due(
    basis: NotificationBasis,
    current: Union[date, float],
    recurrence: Recurrence = Recurrence.NONE,
    counter_step: Optional[float] = None,
) -> Optional[Union[date, float]]:
    if basis == NotificationBasis.COUNTER:
        return next_counter_value(current, counter_step)
    return next_due_date(current, recurrence)


def effective_recurrence(
    notification: Notification,
    subscription: Optional[Subscription] = None,
) -> Recurrence:
    """
    Recurrence that governs a notification.

    Subscription reminders carry "None" as a placeholder; the parent
    subscription's recurrence is the real schedule.
    """
    if (
        notification.subscription_id
        and notification.recurrence == Recurrence.NONE
        and subscription is not None
    ):
        return subscription.recurrence
    return notification.recurrence


def recurrence_for_months(months: Optional[int]) -> Recurrence:
    if not months:
        return Recurrence.NONE
    return MONTHS_TO_RECURRENCE.get(months, Recurrence.NONE)


def add_months(start: date, months: int) -> date:
    return start + relativedelta(months=months)


# ============================================================
# DIRECTIVES
# ============================================================

def directive_basis(directive: Directive) -> Optional[NotificationBasis]:
    """Due basis implied by the directive's initial due type."""
    if directive.initial_due_type is None or directive.initial_due_type == InitialDueType.OTHER:
        return None
    if directive.initial_due_type == InitialDueType.BY_TOTAL_TIME:
        return NotificationBasis.COUNTER
    return NotificationBasis.DATE


def is_recurring_directive(directive: Directive) -> bool:
    return directive.compliance_scope == ComplianceScope.RECURRING and bool(
        directive.repeat_months or directive.repeat_hours
    )


def anchored_next_due_date(directive: Directive, compliance_date: date) -> Optional[date]:
    """Next due date counted from the date compliance actually happened."""
    if directive.compliance_scope != ComplianceScope.RECURRING or not directive.repeat_months:
        return None
    return add_months(compliance_date, directive.repeat_months)


def anchored_next_due_counter(directive: Directive, compliance_value: Optional[float]) -> Optional[float]:
    """Next due counter reading counted from the reading recorded at compliance."""
    if directive.compliance_scope != ComplianceScope.RECURRING or compliance_value is None:
        return None
    return next_counter_value(compliance_value, directive.repeat_hours)
