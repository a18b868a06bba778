# backend/tripgate/models/trip.py

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from tripgate.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_trip_id() -> str:
    return uuid.uuid4().hex


class Trip(Base):
    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_trip_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)

    # Credential store: only the argon2 hash is ever persisted
    pin_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    pin_rotated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pin_rotated_by: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # member_id -> role value, one entry per ACTIVE member.
    # Always reassign (never mutate in place) so the ORM sees the change.
    roles: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)

    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    activity_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    @validates("created_by")
    def _validate_created_by(self, key: str, value: str) -> str:
        if self.created_by is not None and self.created_by != value:
            raise ValueError("Trip creator is immutable once set")
        return value
