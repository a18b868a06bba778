# backend/tripgate/core/membership.py
"""
Membership lifecycle: trip bootstrap, PIN join, removal, role changes and PIN
rotation.

Every change that touches both a member row and the trip's role map commits
as ONE unit, so the two can never disagree. Notifications are emitted after
the commit and may be lost.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.core import notifications
from tripgate.core.context import AuthContext
from tripgate.core.credentials import credential_issuer, is_well_formed_pin
from tripgate.core.errors import (
    AuthCode,
    AuthenticationError,
    AuthorizationError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from tripgate.core.logging import get_logger
from tripgate.core.notifications import notifier
from tripgate.core.resolver import CredentialResolver, credential_resolver
from tripgate.core.roles import MemberRole, MemberState
from tripgate.crud.directory import (
    find_active_member_by_name,
    get_member,
    get_trip,
    get_trip_for_update,
)
from tripgate.models.trip import Trip, new_trip_id
from tripgate.models.trip_member import TripMember, new_member_id

logger = get_logger(__name__)

NAME_TAKEN_MESSAGE = "A member with this name already exists in the trip"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_display_name(display_name: str | None) -> str:
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("displayName is required")
    return name


async def _commit(db: AsyncSession, failure_message: str, **log_fields) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("directory_commit_failed", error=str(exc), **log_fields)
        raise InternalError(failure_message) from exc


# ---------------------------------------------------------
# Trip bootstrap
# ---------------------------------------------------------
@dataclass(frozen=True)
class TripBootstrap:
    trip: Trip
    creator: TripMember
    pin: str  # plaintext, disclosed once


async def bootstrap_trip(
    db: AsyncSession,
    *,
    name: str,
    start_date: date,
    end_date: date,
    timezone: str,
    display_name: str,
    is_child: bool = False,
    description: Optional[str] = None,
) -> TripBootstrap:
    display_name = _normalize_display_name(display_name)
    issued = await run_in_threadpool(credential_issuer.create)

    creator_id = new_member_id()
    trip = Trip(
        id=new_trip_id(),
        name=name.strip(),
        description=(description or "").strip() or None,
        start_date=start_date,
        end_date=end_date,
        timezone=timezone,
        pin_hash=issued.pin_hash,
        created_by=creator_id,
        roles={creator_id: MemberRole.ELEVATED.value},
        member_count=1,
        activity_count=0,
    )
    creator = TripMember(
        id=creator_id,
        trip_id=trip.id,
        display_name=display_name,
        role=MemberRole.ELEVATED,
        state=MemberState.ACTIVE,
        is_creator=True,
        is_child=bool(is_child),
        joined_at=_utcnow(),
    )

    # trip + first member land together or not at all
    db.add_all([trip, creator])
    await _commit(db, "Failed to create trip", trip_id=trip.id)

    logger.info("trip_created", trip_id=trip.id, member_id=creator_id)
    return TripBootstrap(trip=trip, creator=creator, pin=issued.plaintext)


# ---------------------------------------------------------
# Join with PIN
# ---------------------------------------------------------
async def join_trip(
    db: AsyncSession,
    *,
    pin: str,
    display_name: str,
    is_child: bool = False,
    trip_id: Optional[str] = None,
    resolver: Optional[CredentialResolver] = None,
) -> tuple[Trip, TripMember]:
    """
    Turn a PIN (+ optional trip id) into a brand-new STANDARD membership.

    Without a trip id every trip's hash is tried in turn (see resolver.py).
    """
    if not is_well_formed_pin(pin):
        raise ValidationError("PIN must be 6 digits")
    display_name = _normalize_display_name(display_name)

    if trip_id:
        trip = await get_trip(db, trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        if not await run_in_threadpool(credential_issuer.verify, pin, trip.pin_hash):
            logger.warning("join_rejected", trip_id=trip_id, reason="pin_mismatch")
            raise AuthenticationError("Invalid PIN", code=AuthCode.INVALID_PIN)
        target_id = trip.id
    else:
        target_id = await (resolver or credential_resolver).resolve(db, pin)
        if target_id is None:
            logger.warning("join_rejected", reason="no_trip_matched")
            raise AuthenticationError("Invalid PIN", code=AuthCode.INVALID_PIN)

    trip = await get_trip_for_update(db, target_id)
    if trip is None:
        # deleted between the PIN check and now
        raise NotFoundError("Trip not found")

    if await find_active_member_by_name(db, trip.id, display_name) is not None:
        raise ValidationError(NAME_TAKEN_MESSAGE)

    member = TripMember(
        id=new_member_id(),
        trip_id=trip.id,
        display_name=display_name,
        role=MemberRole.STANDARD,
        state=MemberState.ACTIVE,
        is_creator=False,
        is_child=bool(is_child),
        joined_at=_utcnow(),
    )
    db.add(member)
    trip.roles = {**(trip.roles or {}), member.id: MemberRole.STANDARD.value}
    trip.member_count = (trip.member_count or 0) + 1

    try:
        await db.commit()
    except IntegrityError as exc:
        # lost a race with a concurrent join under the same name
        await db.rollback()
        raise ValidationError(NAME_TAKEN_MESSAGE) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("directory_commit_failed", trip_id=trip.id, error=str(exc))
        raise InternalError("Failed to join trip") from exc

    logger.info("member_joined", trip_id=trip.id, member_id=member.id)

    await notifier.emit(
        db,
        trip_id=trip.id,
        type=notifications.MEMBER_JOINED,
        message=f"{member.display_name} joined the trip",
        created_by=member.id,
    )
    return trip, member


# ---------------------------------------------------------
# Elevated-only administration
# ---------------------------------------------------------
async def _load_trip_and_target(
    db: AsyncSession,
    ctx: AuthContext,
    target_member_id: str,
) -> tuple[Trip, TripMember]:
    trip = await get_trip_for_update(db, ctx.trip_id)
    if trip is None:
        raise NotFoundError("Trip not found")

    target = await get_member(db, ctx.trip_id, target_member_id)
    if target is None or target.state is MemberState.REMOVED:
        raise NotFoundError("Member not found")
    return trip, target


async def remove_member(db: AsyncSession, ctx: AuthContext, target_member_id: str) -> TripMember:
    """Soft-delete a member. The removed identity is never reused."""
    if target_member_id == ctx.member_id:
        raise AuthorizationError("Cannot remove yourself from the trip", error_code="SELF_REMOVAL")

    trip, target = await _load_trip_and_target(db, ctx, target_member_id)
    if target.is_creator:
        raise AuthorizationError("Cannot remove the trip creator", error_code="CREATOR_PROTECTED")

    target.state = MemberState.REMOVED
    target.removed_at = _utcnow()
    target.removed_by = ctx.member_id

    roles = dict(trip.roles or {})
    roles.pop(target.id, None)
    trip.roles = roles
    trip.member_count = max(0, (trip.member_count or 1) - 1)

    await _commit(db, "Failed to remove member", trip_id=trip.id, member_id=target.id)
    logger.info("member_removed", trip_id=trip.id, member_id=target.id, removed_by=ctx.member_id)

    await notifier.emit(
        db,
        trip_id=trip.id,
        type=notifications.MEMBER_LEFT,
        message=f"{target.display_name} was removed from the trip",
        created_by=ctx.member_id,
        payload={"removedMember": {"id": target.id, "displayName": target.display_name}},
    )
    return target


async def change_member_role(
    db: AsyncSession,
    ctx: AuthContext,
    target_member_id: str,
    role: MemberRole,
) -> TripMember:
    trip, target = await _load_trip_and_target(db, ctx, target_member_id)
    if target.is_creator:
        raise AuthorizationError("Cannot modify the trip creator", error_code="CREATOR_PROTECTED")

    role = MemberRole(role)
    if target.role is role:
        return target

    previous = target.role
    target.role = role
    trip.roles = {**(trip.roles or {}), target.id: role.value}

    await _commit(db, "Failed to update member", trip_id=trip.id, member_id=target.id)
    logger.info(
        "member_role_changed",
        trip_id=trip.id,
        member_id=target.id,
        old_role=previous.value,
        new_role=role.value,
        changed_by=ctx.member_id,
    )

    await notifier.emit(
        db,
        trip_id=trip.id,
        type=notifications.MEMBER_ROLE_CHANGED,
        message=f"{target.display_name} is now {role.value}",
        created_by=ctx.member_id,
        payload={"memberId": target.id, "role": role.value},
    )
    return target


async def rotate_trip_pin(db: AsyncSession, ctx: AuthContext) -> str:
    trip = await get_trip_for_update(db, ctx.trip_id)
    if trip is None:
        raise NotFoundError("Trip not found")

    pin = await credential_issuer.rotate(db, trip, actor_id=ctx.member_id)

    await notifier.emit(
        db,
        trip_id=trip.id,
        type=notifications.PIN_ROTATED,
        message="The trip PIN was changed",
        created_by=ctx.member_id,
    )
    return pin
