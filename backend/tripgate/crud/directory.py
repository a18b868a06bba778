# tripgate/crud/directory.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.core.roles import MemberState
from tripgate.models.trip import Trip
from tripgate.models.trip_member import TripMember


async def get_trip(db: AsyncSession, trip_id: str) -> Optional[Trip]:
    return await db.get(Trip, trip_id)


async def get_trip_for_update(db: AsyncSession, trip_id: str) -> Optional[Trip]:
    """
    Lock the trip row for a read-modify-write of its role map / counters.
    populate_existing: the row may already sit in the identity map from the
    live-state check earlier in the same request.
    """
    stmt = (
        select(Trip)
        .where(Trip.id == trip_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def get_member(db: AsyncSession, trip_id: str, member_id: str) -> Optional[TripMember]:
    """Fetch a member by id, scoped to its trip. Returns removed members too."""
    stmt = (
        select(TripMember)
        .where(TripMember.trip_id == trip_id)
        .where(TripMember.id == member_id)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def find_active_member_by_name(
    db: AsyncSession,
    trip_id: str,
    display_name: str,
) -> Optional[TripMember]:
    """Exact, case-sensitive match among ACTIVE members."""
    stmt = (
        select(TripMember)
        .where(TripMember.trip_id == trip_id)
        .where(TripMember.display_name == display_name)
        .where(TripMember.state == MemberState.ACTIVE)
        .limit(1)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def list_active_members(db: AsyncSession, trip_id: str) -> list[TripMember]:
    stmt = (
        select(TripMember)
        .where(TripMember.trip_id == trip_id)
        .where(TripMember.state == MemberState.ACTIVE)
        .order_by(TripMember.joined_at.asc(), TripMember.id.asc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_trip_credentials(db: AsyncSession) -> list[tuple[str, str]]:
    """
    (trip_id, pin_hash) for every trip in a stable order
    (oldest first, id as tie-breaker).
    """
    stmt = select(Trip.id, Trip.pin_hash).order_by(Trip.created_at.asc(), Trip.id.asc())
    res = await db.execute(stmt)
    return [(trip_id, pin_hash) for trip_id, pin_hash in res.all()]
