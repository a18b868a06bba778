from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from tripgate.core.roles import MemberRole
from tripgate.models.trip_member import TripMember


@dataclass(frozen=True)
class AuthContext:
    """
    Request-scoped identity, built from the LIVE directory records after the
    session token has been re-validated. Handlers branch on this only; the
    token's own claims never reach them.
    """

    trip_id: str
    member_id: str
    role: MemberRole
    display_name: str
    is_creator: bool
    is_child: bool
    joined_at: datetime

    @property
    def is_elevated(self) -> bool:
        return self.role is MemberRole.ELEVATED

    @classmethod
    def from_member(cls, member: TripMember) -> "AuthContext":
        return cls(
            trip_id=member.trip_id,
            member_id=member.id,
            role=member.role,
            display_name=member.display_name,
            is_creator=member.is_creator,
            is_child=member.is_child,
            joined_at=member.joined_at,
        )
