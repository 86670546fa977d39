"""Recurring commitments (insurance, hangar, database updates) for an aircraft"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, datetime
from enum import Enum

from models.notification import Recurrence


class SubscriptionType(str, Enum):
    INSURANCE = "Insurance"
    HANGAR = "Hangar"
    DATABASE = "Database"
    MEMBERSHIP = "Membership"
    OTHER = "Other"


class SubscriptionBase(BaseModel):
    subscription_name: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    type: SubscriptionType = SubscriptionType.OTHER
    cost: Optional[int] = Field(None, ge=0)
    initial_date: date
    final_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.NONE

    @model_validator(mode="after")
    def check_dates(self):
        if self.final_date is not None and self.final_date < self.initial_date:
            raise ValueError("final_date cannot be before initial_date")
        return self

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE


class SubscriptionCreate(SubscriptionBase):
    aircraft_id: str


class Subscription(SubscriptionCreate):
    id: str = Field(alias="_id")
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


SUBSCRIPTIONS_INDEXES = [
    {
        "keys": [("user_id", 1), ("aircraft_id", 1)],
        "name": "user_aircraft_idx"
    },
]
