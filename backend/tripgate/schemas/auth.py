# backend/tripgate/schemas/auth.py
from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator

from tripgate.core.credentials import is_well_formed_pin
from tripgate.schemas.common import CamelModel
from tripgate.schemas.member import MemberOut
from tripgate.schemas.trip import TripSummary


class JoinRequest(CamelModel):
    pin: str
    trip_id: Optional[str] = Field(default=None, max_length=64)
    display_name: str = Field(min_length=1, max_length=100)
    is_child: bool = False

    @field_validator("pin")
    @classmethod
    def validate_pin(cls, v: str) -> str:
        # no trimming: " 482913 " is malformed, not a PIN
        if not is_well_formed_pin(v):
            raise ValueError("PIN must be 6 digits")
        return v

    @field_validator("trip_id")
    @classmethod
    def blank_trip_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("displayName must not be blank")
        return v


class JoinResponse(CamelModel):
    token: str
    member: MemberOut
    trip: TripSummary


class SessionOut(CamelModel):
    valid: bool = True
    member: MemberOut
    trip: TripSummary
