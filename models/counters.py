"""Usage counter models for the compliance engine"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class CounterType(str, Enum):
    """Cumulative usage counters tracked per aircraft"""
    HOBBS = "Hobbs"
    TACH = "Tach"
    AIRFRAME_TT = "Airframe TT"
    ENGINE_TT = "Engine TT"
    PROP_TT = "Prop TT"


# Counter type -> snapshot field
COUNTER_FIELDS = {
    CounterType.HOBBS: "hobbs",
    CounterType.TACH: "tach",
    CounterType.AIRFRAME_TT: "airframe_total_time",
    CounterType.ENGINE_TT: "engine_total_time",
    CounterType.PROP_TT: "prop_total_time",
}


class CounterSnapshot(BaseModel):
    """Current counter values for one aircraft. Absent values read as 0."""
    hobbs: float = 0.0
    tach: float = 0.0
    airframe_total_time: float = 0.0
    engine_total_time: float = 0.0
    prop_total_time: float = 0.0

    def value_for(self, counter_type: Optional[CounterType]) -> Optional[float]:
        if counter_type is None:
            return None
        return getattr(self, COUNTER_FIELDS[CounterType(counter_type)])


class CounterUpdate(BaseModel):
    hobbs: Optional[float] = Field(None, ge=0)
    tach: Optional[float] = Field(None, ge=0)
    airframe_total_time: Optional[float] = Field(None, ge=0)
    engine_total_time: Optional[float] = Field(None, ge=0)
    prop_total_time: Optional[float] = Field(None, ge=0)


class AircraftCounters(CounterSnapshot):
    aircraft_id: str
    user_id: str
    updated_at: Optional[datetime] = None


AIRCRAFT_COUNTERS_INDEXES = [
    {
        "keys": [("user_id", 1), ("aircraft_id", 1)],
        "unique": True,
        "name": "user_aircraft_counters_unique"
    },
]
