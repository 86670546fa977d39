from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from models.counters import CounterType, COUNTER_FIELDS
from models.directive import ComplianceEventStatus, ComplianceLink

class MaintenanceCategory(str, Enum):
    AIRPLANE = "Airplane"
    AIRFRAME = "Airframe"
    ENGINE = "Engine"
    PROPELLER = "Propeller"
    AVIONICS = "Avionics"
    ELECTRICAL = "Electrical"
    INTERIOR = "Interior"
    EXTERIOR = "Exterior"
    ACCESSORIES = "Accessories"
    OTHER = "Other"

class IntervalType(str, Enum):
    NONE = "None"
    CALENDAR = "Calendar"
    HOURS = "Hours"
    MIXED = "Mixed"  # both a calendar and an hours reminder

class DirectiveComplianceLink(BaseModel):
    """Directive compliance recorded as part of a maintenance log"""
    directive_id: str
    compliance_status: ComplianceEventStatus = ComplianceEventStatus.COMPLIED
    counter_type: Optional[CounterType] = None
    counter_value: Optional[float] = Field(None, ge=0)
    owner_notes: Optional[str] = Field(None, max_length=2000)
    compliance_links: List[ComplianceLink] = []
    mark_directive_completed: bool = False

class MaintenanceLogBase(BaseModel):
    aircraft_id: str
    entry_title: str = Field(..., min_length=1, max_length=120)
    category: MaintenanceCategory = MaintenanceCategory.AIRFRAME
    date_performed: date

    # Counters at time of maintenance
    hobbs_at_event: float = Field(..., ge=0)
    tach_at_event: float = Field(..., ge=0)
    airframe_total_time: float = Field(..., ge=0)
    engine_total_time: float = Field(..., ge=0)
    prop_total_time: float = Field(..., ge=0)

    # Next-due tracking
    is_recurring_task: bool = False
    interval_type: IntervalType = IntervalType.NONE
    interval_hours: Optional[float] = Field(None, ge=0)
    interval_months: Optional[int] = Field(None, ge=0)
    interval_counter_type: CounterType = CounterType.TACH
    next_due_hours: Optional[float] = Field(None, ge=0)
    next_due_date: Optional[date] = None

    performed_by_name: Optional[str] = Field(None, max_length=80)
    internal_notes: Optional[str] = Field(None, max_length=2000)

    directive_compliance: List[DirectiveComplianceLink] = []

    @model_validator(mode="after")
    def check_interval_fields(self):
        directive_ids = [link.directive_id for link in self.directive_compliance]
        if len(directive_ids) != len(set(directive_ids)):
            raise ValueError("A directive can only be linked once per maintenance log")
        if not self.is_recurring_task:
            return self
        if self.interval_type in (IntervalType.HOURS, IntervalType.MIXED):
            if self.next_due_hours is None and not self.interval_hours:
                raise ValueError("interval_hours or next_due_hours is required for hours intervals")
        if self.interval_type in (IntervalType.CALENDAR, IntervalType.MIXED):
            if self.next_due_date is None and not self.interval_months:
                raise ValueError("interval_months or next_due_date is required for calendar intervals")
        return self

    def counter_at_event(self, counter_type: CounterType) -> float:
        field = COUNTER_FIELDS[CounterType(counter_type)]
        if field in ("hobbs", "tach"):
            field = f"{field}_at_event"
        return getattr(self, field)

class MaintenanceLogCreate(MaintenanceLogBase):
    pass

class MaintenanceLog(MaintenanceLogBase):
    id: str = Field(alias="_id")
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

MAINTENANCE_LOGS_INDEXES = [
    {
        "keys": [("user_id", 1), ("aircraft_id", 1), ("date_performed", -1)],
        "name": "user_aircraft_date_idx"
    },
]
