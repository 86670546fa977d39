"""
Notification Models

A notification is a single obligation with a due condition, either a calendar
date or a usage counter threshold. Rows are either authored by the user or
generated from a parent record (directive, maintenance log, subscription,
equipment).

Collection: notifications

RULES:
- notification_basis selects which field group is active (Date or Counter)
- Completion closes a row, it never moves the due value of that row
- A generated row edited by the user is frozen (user_modified=True)
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from models.counters import CounterType


class NotificationType(str, Enum):
    MAINTENANCE = "Maintenance"
    SUBSCRIPTION = "Subscription"
    DIRECTIVES = "Directives"
    OTHER = "Other"


class NotificationBasis(str, Enum):
    """Whether the due condition is a date or a counter threshold"""
    DATE = "Date"
    COUNTER = "Counter"


class Recurrence(str, Enum):
    NONE = "None"
    WEEKLY = "Weekly"
    BI_MONTHLY = "Bi-Monthly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUAL = "Semi-Annual"
    YEARLY = "Yearly"


class AlertState(str, Enum):
    NORMAL = "normal"
    REMINDER = "reminder"
    DUE = "due"


class ManagementState(str, Enum):
    """Ownership of a generated notification"""
    MANAGED = "Managed"  # kept in sync by automation
    FROZEN = "Frozen"    # edited by a human, automation keeps out


# Back-reference fields pointing at the record that generated a notification
LINK_FIELDS = ("subscription_id", "directive_id", "maintenance_log_id", "equipment_id")

DEFAULT_ALERT_DAYS = 7
DEFAULT_ALERT_HOURS = 10.0


class NotificationBase(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    type: NotificationType = NotificationType.MAINTENANCE
    notification_basis: NotificationBasis = NotificationBasis.DATE

    # Date basis
    initial_date: date = Field(default_factory=date.today)
    recurrence: Recurrence = Recurrence.NONE
    alert_days: int = Field(DEFAULT_ALERT_DAYS, ge=0)

    # Counter basis
    counter_type: Optional[CounterType] = None
    initial_counter_value: Optional[float] = Field(None, ge=0)
    counter_step: Optional[float] = Field(None, ge=0)
    alert_hours: float = Field(DEFAULT_ALERT_HOURS, ge=0)

    @model_validator(mode="after")
    def check_basis_fields(self):
        if self.notification_basis == NotificationBasis.COUNTER:
            if self.counter_type is None or self.initial_counter_value is None:
                raise ValueError("Counter notifications require counter_type and initial_counter_value")
        return self

    @property
    def due_value(self):
        """The active due value: a date or a counter reading."""
        if self.notification_basis == NotificationBasis.COUNTER:
            return self.initial_counter_value
        return self.initial_date


class NotificationCreate(NotificationBase):
    """Notification authored directly by the user"""
    aircraft_id: str
    equipment_id: Optional[str] = None  # user-authored rows may point at equipment


class NotificationDraft(NotificationCreate):
    """Notification about to be written, possibly generated from a parent record"""
    subscription_id: Optional[str] = None
    directive_id: Optional[str] = None
    maintenance_log_id: Optional[str] = None
    user_modified: bool = False


class NotificationUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    type: Optional[NotificationType] = None
    notification_basis: Optional[NotificationBasis] = None
    initial_date: Optional[date] = None
    recurrence: Optional[Recurrence] = None
    alert_days: Optional[int] = Field(None, ge=0)
    counter_type: Optional[CounterType] = None
    initial_counter_value: Optional[float] = Field(None, ge=0)
    counter_step: Optional[float] = Field(None, ge=0)
    alert_hours: Optional[float] = Field(None, ge=0)


class Notification(NotificationDraft):
    id: str = Field(alias="_id")
    user_id: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def is_generated(self) -> bool:
        return any(getattr(self, field) for field in LINK_FIELDS)

    @property
    def management(self) -> ManagementState:
        return ManagementState.FROZEN if self.user_modified else ManagementState.MANAGED

    def as_draft(self) -> NotificationDraft:
        """Template copy of this row for inserting a successor."""
        return NotificationDraft(**self.model_dump(include=set(NotificationDraft.model_fields)))


class NotificationWithAlert(BaseModel):
    notification: Notification
    alert: AlertState


class AircraftAlertsResponse(BaseModel):
    aircraft_id: str
    notifications: List[NotificationWithAlert]
    any_active_alert: bool


# ============================================================
# INDEX DEFINITION
# ============================================================

NOTIFICATIONS_INDEXES = [
    {
        "keys": [("user_id", 1), ("aircraft_id", 1), ("is_completed", 1)],
        "name": "user_aircraft_active_idx"
    },
    {
        "keys": [("directive_id", 1)],
        "name": "directive_id_idx"
    },
    {
        "keys": [("maintenance_log_id", 1)],
        "name": "maintenance_log_id_idx"
    },
    {
        "keys": [("subscription_id", 1)],
        "name": "subscription_id_idx"
    },
    {
        "keys": [("equipment_id", 1)],
        "name": "equipment_id_idx"
    },
]
