from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from typing import Optional, List

import pytz

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class TimeSlot(BaseModel):
    start: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end: str = Field(..., pattern=r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$")  # 24:00 is midnight

    @field_validator("end")
    @classmethod
    def end_after_start(cls, end, info):
        start = info.data.get("start")
        if start is not None and end <= start:
            raise ValueError("time slot end must be after its start")
        return end


def _check_days(days: List[str]) -> List[str]:
    unknown = [day for day in days if day not in WEEKDAYS]
    if unknown:
        raise ValueError(f"unknown weekday(s): {', '.join(unknown)}")
    return days


def _check_timezone(name: Optional[str]) -> Optional[str]:
    if name is not None and name not in pytz.all_timezones_set:
        raise ValueError(f"unknown timezone '{name}'")
    return name


class ParkingSpotCreate(BaseModel):
    owner_id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    price_per_hour: float = Field(..., gt=0)
    available_days: List[str] = Field(default_factory=lambda: list(WEEKDAYS))
    time_slots: List[TimeSlot] = []
    timezone: Optional[str] = None  # falls back to DEFAULT_SPOT_TIMEZONE

    @field_validator("available_days")
    @classmethod
    def known_days(cls, days):
        return _check_days(days)

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, name):
        return _check_timezone(name)


class ParkingSpotRead(ParkingSpotCreate):
    id: UUID
    is_available: bool
    timezone: str
    created_at: datetime

    class Config:
        from_attributes = True


class AvailabilityToggle(BaseModel):
    is_available: bool


class SpotConstraints(BaseModel):
    """Read-only view of a spot that admission decisions are made against."""
    spot_id: UUID
    owner_id: str
    price_per_hour: float
    available_days: List[str]
    time_slots: List[TimeSlot] = []
    is_available: bool = True
    timezone: str = "UTC"
