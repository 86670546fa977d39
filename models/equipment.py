"""Installed equipment and tools tracked per aircraft"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime


class EquipmentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    manufacturer: Optional[str] = Field(None, max_length=120)
    model_or_part_number: Optional[str] = Field(None, max_length=120)
    serial_number: Optional[str] = Field(None, max_length=120)
    vendor: Optional[str] = Field(None, max_length=120)
    purchase_date: Optional[date] = None
    installed_date: Optional[date] = None
    warranty_start_date: Optional[date] = None
    warranty_expiration_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=2000)
    tags: List[str] = []

    @model_validator(mode="after")
    def check_warranty(self):
        if (
            self.warranty_start_date is not None
            and self.warranty_expiration_date is not None
            and self.warranty_expiration_date < self.warranty_start_date
        ):
            raise ValueError("warranty_expiration_date cannot be before warranty_start_date")
        return self


class EquipmentCreate(EquipmentBase):
    aircraft_id: str


class Equipment(EquipmentCreate):
    id: str = Field(alias="_id")
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


EQUIPMENT_INDEXES = [
    {
        "keys": [("user_id", 1), ("aircraft_id", 1)],
        "name": "user_aircraft_idx"
    },
]
