from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import Field, field_validator, model_validator

from tripgate.schemas.common import CamelModel
from tripgate.schemas.member import MemberOut

MAX_TRIP_DAYS = 365


class TripCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    start_date: date
    end_date: date
    timezone: str = Field(min_length=1, max_length=64)
    display_name: str = Field(min_length=1, max_length=100)
    is_child: bool = False
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("name", "display_name", "timezone")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def validate_date_range(self) -> "TripCreate":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if (self.end_date - self.start_date).days > MAX_TRIP_DAYS:
            raise ValueError("Trip duration cannot exceed 1 year")
        return self


class TripSummary(CamelModel):
    """Trip fields safe to show any member. Never carries the PIN hash."""

    id: str
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    timezone: str
    member_count: int
    activity_count: int


class TripCreatedOut(TripSummary):
    # plaintext PIN: only ever present in the creation response
    pin: str
    invite_link: str


class TripCreateResponse(CamelModel):
    token: str
    trip: TripCreatedOut
    member: MemberOut


class PinRotatedOut(CamelModel):
    success: bool = True
    message: str = "PIN rotated successfully"
    # new plaintext PIN, disclosed once
    pin: str
