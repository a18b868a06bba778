# backend/tripgate/api/v1/trips.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.api.deps.trip import get_auth_context, require_elevated
from tripgate.core.config import settings
from tripgate.core.context import AuthContext
from tripgate.core.errors import NotFoundError
from tripgate.core.membership import (
    bootstrap_trip,
    change_member_role,
    remove_member,
    rotate_trip_pin,
)
from tripgate.core.security import session_tokens
from tripgate.crud.directory import get_trip, list_active_members
from tripgate.db.session import get_db
from tripgate.schemas.member import MemberListOut, MemberOut, MemberRemovedOut, MemberRoleUpdate
from tripgate.schemas.trip import (
    PinRotatedOut,
    TripCreate,
    TripCreatedOut,
    TripCreateResponse,
    TripSummary,
)

router = APIRouter(prefix="/trips", tags=["trips"])


def _invite_link(trip_id: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}?trip={trip_id}"


# ---------------------------------------------------------
# Trip creation (public)
# ---------------------------------------------------------
@router.post("", response_model=TripCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(payload: TripCreate, db: AsyncSession = Depends(get_db)) -> TripCreateResponse:
    """
    Creates the trip and its creator (ELEVATED) in one commit.
    The plaintext PIN is returned here and never again.
    """
    created = await bootstrap_trip(
        db,
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        timezone=payload.timezone,
        display_name=payload.display_name,
        is_child=payload.is_child,
        description=payload.description,
    )
    trip, creator = created.trip, created.creator

    token = session_tokens.issue(
        trip_id=trip.id,
        member_id=creator.id,
        role=creator.role,
        display_name=creator.display_name,
    )
    summary = TripSummary.model_validate(trip)
    return TripCreateResponse(
        token=token,
        trip=TripCreatedOut(**summary.model_dump(), pin=created.pin, invite_link=_invite_link(trip.id)),
        member=MemberOut.model_validate(creator),
    )


# ---------------------------------------------------------
# Trip scoped endpoints (trip comes from the live context)
# ---------------------------------------------------------
@router.get("/current", response_model=TripSummary)
async def get_current_trip(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> TripSummary:
    trip = await get_trip(db, ctx.trip_id)
    if trip is None:
        raise NotFoundError("Trip not found")
    return TripSummary.model_validate(trip)


@router.get("/current/members", response_model=MemberListOut)
async def list_members(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> MemberListOut:
    members = await list_active_members(db, ctx.trip_id)
    return MemberListOut(members=[MemberOut.model_validate(m) for m in members])


# =========================================================
# ELEVATED ONLY
# =========================================================
@router.post("/current/pin/rotate", response_model=PinRotatedOut)
async def rotate_pin(
    ctx: AuthContext = Depends(require_elevated),
    db: AsyncSession = Depends(get_db),
) -> PinRotatedOut:
    """
    Replace the trip PIN. The old PIN stops working immediately; sessions
    already issued stay valid.
    """
    pin = await rotate_trip_pin(db, ctx)
    return PinRotatedOut(pin=pin)


@router.put("/current/members/{member_id}", response_model=MemberOut)
async def update_member_role(
    member_id: str,
    payload: MemberRoleUpdate,
    ctx: AuthContext = Depends(require_elevated),
    db: AsyncSession = Depends(get_db),
) -> MemberOut:
    member = await change_member_role(db, ctx, member_id, payload.role)
    return MemberOut.model_validate(member)


@router.delete("/current/members/{member_id}", response_model=MemberRemovedOut)
async def delete_member(
    member_id: str,
    ctx: AuthContext = Depends(require_elevated),
    db: AsyncSession = Depends(get_db),
) -> MemberRemovedOut:
    """Soft delete. Cannot target yourself or the trip creator."""
    await remove_member(db, ctx, member_id)
    return MemberRemovedOut()
