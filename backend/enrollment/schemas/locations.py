# backend/enrollment/schemas/locations.py

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class LocationRead(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class ScheduleDayRead(BaseModel):
    weekday: str
    is_open: bool
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None

    model_config = {"from_attributes": True}


class ScheduleRead(BaseModel):
    id: Optional[str] = None
    name: str
    start_date: date
    end_date: date
    days: list[ScheduleDayRead]

    model_config = {"from_attributes": True}


class SchedulesResponse(BaseModel):
    schedules: list[ScheduleRead]


class CapacityResponse(BaseModel):
    """Persisted parcels per civil date ("YYYY-MM-DD") for a location."""
    location_id: str
    start_date: date
    end_date: date
    has_limit: bool
    max_per_day: Optional[int] = None
    date_capacities: dict[str, int] = {}


class SlotDurationResponse(BaseModel):
    location_id: str
    slot_duration_minutes: int


class DayStatusRead(BaseModel):
    date: date
    status: str = Field(description="available / past / closed / closed_for_today / full")
    is_selectable: bool
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    remaining_capacity: Optional[int] = None


class DaysResponse(BaseModel):
    location_id: str
    start_date: date
    end_date: date
    slot_duration_minutes: int
    days: list[DayStatusRead]


class SlotsResponse(BaseModel):
    location_id: str
    date: date
    slot_duration_minutes: int
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    available_times: list[str]
