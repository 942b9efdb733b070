# backend/enrollment/schemas/parcels.py

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ParcelIn(BaseModel):
    """A parcel as chosen in the enrollment form. id set = already stored."""
    id: Optional[str] = None
    pickup_date: date
    pickup_earliest_time: datetime
    pickup_latest_time: datetime

    @field_validator("pickup_earliest_time", "pickup_latest_time")
    @classmethod
    def require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("pickup times must include a UTC offset")
        return value


class ParcelsCommitRequest(BaseModel):
    pickup_location_id: str
    parcels: list[ParcelIn] = Field(default_factory=list)


class ParcelsCommitResponse(BaseModel):
    household_id: str
    pickup_location_id: str
    parcel_ids: list[str]


class ValidationIssueRead(BaseModel):
    field: str
    code: str
    message: str
    details: dict = {}
