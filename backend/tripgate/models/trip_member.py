# backend/tripgate/models/trip_member.py

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from tripgate.core.roles import MemberRole, MemberState
from tripgate.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_member_id() -> str:
    return uuid.uuid4().hex


def _enum_values(enum_cls) -> list[str]:
    return [m.value for m in enum_cls]


class TripMember(Base):
    __tablename__ = "trip_members"
    __table_args__ = (
        # Display names are unique among ACTIVE members only
        Index(
            "uq_trip_members_active_display_name",
            "trip_id",
            "display_name",
            unique=True,
            postgresql_where=text("state = 'active'"),
            sqlite_where=text("state = 'active'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_member_id)

    trip_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    display_name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, native_enum=False, values_callable=_enum_values, length=20),
        nullable=False,
        default=MemberRole.STANDARD,
    )
    state: Mapped[MemberState] = mapped_column(
        Enum(MemberState, native_enum=False, values_callable=_enum_values, length=20),
        nullable=False,
        default=MemberState.ACTIVE,
    )

    is_creator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_child: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    removed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    removed_by: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    @property
    def is_active(self) -> bool:
        return self.state is MemberState.ACTIVE
