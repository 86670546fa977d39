"""
Directive Models

Collections:
- directives: rule definitions (AD, SB, manufacturer alerts)
- maintenance_directive_compliance: one row per compliance event
- aircraft_directive_status: one derived summary per (user, directive)
- directive_history: append-only audit log

RULES:
- The summary is always derived from the events, never edited directly
- History rows are never updated or deleted
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from models.counters import CounterType
from models.notification import NotificationBasis


class InitialDueType(str, Enum):
    BEFORE_NEXT_FLIGHT = "Before Next Flight"
    BY_DATE = "By Date"
    BY_TOTAL_TIME = "By Total Time (Hours)"
    BY_CALENDAR = "By Calendar"
    AT_NEXT_INSPECTION = "At Next Inspection"
    OTHER = "Other"


class ComplianceScope(str, Enum):
    ONE_TIME = "One-Time"
    RECURRING = "Recurring"
    CONDITIONAL = "Conditional"
    INFORMATIONAL_ONLY = "Informational Only"


class DirectiveStatus(str, Enum):
    ACTIVE = "Active"
    SUPERSEDED = "Superseded"
    CANCELLED = "Cancelled"
    PROPOSED = "Proposed"
    COMPLETED = "Completed"


class CounterTargetMode(str, Enum):
    """How initial_due_hours is read for By Total Time directives"""
    ABSOLUTE = "Absolute"        # target counter reading
    INCREMENTAL = "Incremental"  # hours from the current reading


class ComplianceEventStatus(str, Enum):
    NOT_COMPLIED = "Not Complied"
    COMPLIED = "Complied"


class SummaryComplianceStatus(str, Enum):
    NOT_REVIEWED = "Not Reviewed"
    NOT_COMPLIED = "Not Complied"
    COMPLIED_ONCE = "Complied Once"
    RECURRING_CURRENT = "Recurring (Current)"
    OVERDUE = "Overdue"
    NOT_APPLICABLE = "Not Applicable"


class ApplicabilityStatus(str, Enum):
    APPLIES = "Applies"
    DOES_NOT_APPLY = "Does Not Apply"
    UNSURE = "Unsure"


class HistoryAction(str, Enum):
    CREATE = "Create"
    DELETE = "Delete"
    COMPLIANCE = "Compliance"


# ============================================================
# DIRECTIVES
# ============================================================

class DirectiveBase(BaseModel):
    directive_code: str = Field(..., min_length=1, max_length=60)
    title: str = Field(..., min_length=1, max_length=200)
    directive_type: Optional[str] = None
    severity: Optional[str] = None
    category: Optional[str] = None
    effective_date: Optional[date] = None

    compliance_scope: ComplianceScope = ComplianceScope.ONE_TIME
    directive_status: DirectiveStatus = DirectiveStatus.ACTIVE

    initial_due_type: Optional[InitialDueType] = None
    initial_due_date: Optional[date] = None
    initial_due_months: Optional[int] = Field(None, ge=0)
    initial_due_hours: Optional[float] = Field(None, ge=0)
    counter_target_mode: CounterTargetMode = CounterTargetMode.INCREMENTAL
    counter_type: Optional[CounterType] = None

    repeat_hours: Optional[float] = Field(None, ge=0)
    repeat_months: Optional[int] = Field(None, ge=0)


class DirectiveCreate(DirectiveBase):
    aircraft_id: str

    @model_validator(mode="after")
    def check_due_fields(self):
        if self.initial_due_type == InitialDueType.BY_DATE and self.initial_due_date is None:
            raise ValueError("initial_due_date is required for By Date directives")
        if self.initial_due_type == InitialDueType.BY_CALENDAR and (
            self.initial_due_date is None and self.initial_due_months is None
        ):
            raise ValueError("initial_due_months or initial_due_date is required for By Calendar directives")
        if self.initial_due_type == InitialDueType.BY_TOTAL_TIME and (
            self.initial_due_hours is None or self.counter_type is None
        ):
            raise ValueError("initial_due_hours and counter_type are required for By Total Time directives")
        return self


class DirectiveUpdate(BaseModel):
    directive_code: Optional[str] = Field(None, min_length=1, max_length=60)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    directive_type: Optional[str] = None
    severity: Optional[str] = None
    category: Optional[str] = None
    effective_date: Optional[date] = None
    compliance_scope: Optional[ComplianceScope] = None
    directive_status: Optional[DirectiveStatus] = None
    initial_due_type: Optional[InitialDueType] = None
    initial_due_date: Optional[date] = None
    initial_due_months: Optional[int] = Field(None, ge=0)
    initial_due_hours: Optional[float] = Field(None, ge=0)
    counter_target_mode: Optional[CounterTargetMode] = None
    counter_type: Optional[CounterType] = None
    repeat_hours: Optional[float] = Field(None, ge=0)
    repeat_months: Optional[int] = Field(None, ge=0)


class Directive(DirectiveCreate):
    id: str = Field(alias="_id")
    user_id: str
    # Resolved counter target, fixed when the due fields were saved
    initial_due_counter_value: Optional[float] = None
    archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def label(self) -> str:
        return f"{self.directive_code} - {self.title}"


# ============================================================
# COMPLIANCE EVENTS
# ============================================================

class ComplianceLink(BaseModel):
    description: str = Field(..., max_length=100)
    url: str = Field(..., max_length=255)


class ComplianceEventCreate(BaseModel):
    directive_id: str
    compliance_date: date
    compliance_status: ComplianceEventStatus = ComplianceEventStatus.COMPLIED
    counter_type: Optional[CounterType] = None
    counter_value: Optional[float] = Field(None, ge=0)
    owner_notes: Optional[str] = Field(None, max_length=2000)
    compliance_links: List[ComplianceLink] = []
    maintenance_log_id: Optional[str] = None


class ComplianceEvent(ComplianceEventCreate):
    id: str = Field(alias="_id")
    user_id: str
    aircraft_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def is_complied(self) -> bool:
        return self.compliance_status == ComplianceEventStatus.COMPLIED


class ComplianceSaveRequest(BaseModel):
    """Compliance save as submitted by the caller. event_id set means edit."""
    event: ComplianceEventCreate
    event_id: Optional[str] = None
    mark_directive_completed: bool = False


# ============================================================
# SUMMARY & HISTORY
# ============================================================

class AircraftDirectiveStatus(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    directive_id: str
    aircraft_id: str
    applicability_status: ApplicabilityStatus = ApplicabilityStatus.UNSURE
    applicability_reason: Optional[str] = None
    compliance_status: SummaryComplianceStatus = SummaryComplianceStatus.NOT_COMPLIED
    first_compliance_date: Optional[date] = None
    first_compliance_counter_value: Optional[float] = None
    last_compliance_date: Optional[date] = None
    last_compliance_counter_value: Optional[float] = None
    compliance_counter_type: Optional[CounterType] = None
    next_due_basis: Optional[NotificationBasis] = None
    next_due_date: Optional[date] = None
    next_due_counter_type: Optional[CounterType] = None
    next_due_counter_value: Optional[float] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class DirectiveHistoryEntry(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    aircraft_id: str
    directive_id: Optional[str] = None
    directive_code: str
    directive_title: str
    action_type: HistoryAction
    compliance_status: Optional[str] = None
    first_compliance_date: Optional[date] = None
    last_compliance_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


# ============================================================
# INDEX DEFINITION
# ============================================================

DIRECTIVES_INDEXES = [
    {
        "keys": [("user_id", 1), ("aircraft_id", 1)],
        "name": "user_aircraft_idx"
    },
]

COMPLIANCE_EVENTS_INDEXES = [
    {
        "keys": [("user_id", 1), ("directive_id", 1), ("compliance_date", -1)],
        "name": "user_directive_date_idx"
    },
    {
        "keys": [("maintenance_log_id", 1)],
        "name": "maintenance_log_id_idx"
    },
]

DIRECTIVE_STATUS_INDEXES = [
    {
        "keys": [("user_id", 1), ("directive_id", 1)],
        "unique": True,
        "name": "user_directive_unique"
    },
]

DIRECTIVE_HISTORY_INDEXES = [
    {
        "keys": [("user_id", 1), ("directive_id", 1), ("created_at", -1)],
        "name": "user_directive_created_idx"
    },
]
