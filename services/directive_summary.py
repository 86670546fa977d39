"""
Directive status summary derivation.

The summary row is rebuilt from every surviving Complied event each time an
event is added, edited or removed. Nothing is patched incrementally, so any
order of edits and deletes yields the same result.
"""

from typing import Iterable, Optional

from models.directive import (
    AircraftDirectiveStatus,
    ApplicabilityStatus,
    ComplianceEvent,
    ComplianceScope,
    Directive,
    SummaryComplianceStatus,
)
from models.notification import NotificationBasis
from services.recurrence import (
    anchored_next_due_counter,
    anchored_next_due_date,
    directive_basis,
)


def summarize_compliance(
    directive: Directive,
    events: Iterable[ComplianceEvent],
    existing: Optional[AircraftDirectiveStatus] = None,
) -> AircraftDirectiveStatus:
    complied = sorted(
        (e for e in events if e.is_complied),
        key=lambda e: (e.compliance_date, e.created_at is None, e.created_at or 0, e.id),
    )

    # Applicability is owner-maintained; carry it over
    applicability = existing.applicability_status if existing else ApplicabilityStatus.UNSURE
    reason = existing.applicability_reason if existing else None

    if not complied:
        return AircraftDirectiveStatus(
            _id=existing.id if existing else None,
            user_id=directive.user_id,
            directive_id=directive.id,
            aircraft_id=directive.aircraft_id,
            applicability_status=applicability,
            applicability_reason=reason,
            compliance_status=SummaryComplianceStatus.NOT_COMPLIED,
        )

    first, last = complied[0], complied[-1]
    if applicability == ApplicabilityStatus.UNSURE:
        applicability = ApplicabilityStatus.APPLIES

    summary = AircraftDirectiveStatus(
        _id=existing.id if existing else None,
        user_id=directive.user_id,
        directive_id=directive.id,
        aircraft_id=directive.aircraft_id,
        applicability_status=applicability,
        applicability_reason=reason,
        compliance_status=(
            SummaryComplianceStatus.RECURRING_CURRENT
            if directive.compliance_scope == ComplianceScope.RECURRING
            else SummaryComplianceStatus.COMPLIED_ONCE
        ),
        first_compliance_date=first.compliance_date,
        first_compliance_counter_value=first.counter_value,
        last_compliance_date=last.compliance_date,
        last_compliance_counter_value=last.counter_value,
        compliance_counter_type=last.counter_type,
    )

    basis = directive_basis(directive)
    if basis == NotificationBasis.COUNTER:
        next_value = anchored_next_due_counter(directive, last.counter_value)
        if next_value is not None:
            summary.next_due_basis = NotificationBasis.COUNTER
            summary.next_due_counter_type = directive.counter_type or last.counter_type
            summary.next_due_counter_value = next_value
    elif basis == NotificationBasis.DATE:
        next_date = anchored_next_due_date(directive, last.compliance_date)
        if next_date is not None:
            summary.next_due_basis = NotificationBasis.DATE
            summary.next_due_date = next_date

    return summary
