# backend/tripgate/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.api.deps.trip import get_auth_context
from tripgate.core.context import AuthContext
from tripgate.core.errors import AuthCode, state_drift
from tripgate.core.membership import join_trip
from tripgate.core.security import session_tokens
from tripgate.crud.directory import get_member, get_trip
from tripgate.db.session import get_db
from tripgate.schemas.auth import JoinRequest, JoinResponse, SessionOut
from tripgate.schemas.member import MemberOut
from tripgate.schemas.trip import TripSummary

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/join", response_model=JoinResponse)
async def join(payload: JoinRequest, db: AsyncSession = Depends(get_db)) -> JoinResponse:
    """
    Body: {"pin": "482913", "tripId": "...optional...", "displayName": "Alice", "isChild": false}
    Returns a session token for the new STANDARD member.

    400: malformed pin / name already taken, 401: wrong pin, 404: unknown tripId.
    """
    trip, member = await join_trip(
        db,
        pin=payload.pin,
        trip_id=payload.trip_id,
        display_name=payload.display_name,
        is_child=payload.is_child,
    )

    token = session_tokens.issue(
        trip_id=trip.id,
        member_id=member.id,
        role=member.role,
        display_name=member.display_name,
    )
    return JoinResponse(
        token=token,
        member=MemberOut.model_validate(member),
        trip=TripSummary.model_validate(trip),
    )


@router.get("/session", response_model=SessionOut)
async def validate_session(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> SessionOut:
    """
    Header: Authorization: Bearer <token>
    Re-validates the token against live membership and echoes who you are.
    """
    # same session as the pipeline: these come from the identity map
    trip = await get_trip(db, ctx.trip_id)
    member = await get_member(db, ctx.trip_id, ctx.member_id)
    if trip is None:
        raise state_drift(AuthCode.TRIP_NOT_FOUND)
    if member is None:
        raise state_drift(AuthCode.MEMBER_NOT_FOUND)

    return SessionOut(
        valid=True,
        member=MemberOut.model_validate(member),
        trip=TripSummary.model_validate(trip),
    )
