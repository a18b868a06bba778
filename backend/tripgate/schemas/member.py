from __future__ import annotations

from datetime import datetime
from typing import List

from tripgate.core.roles import MemberRole, MemberState
from tripgate.schemas.common import CamelModel


class MemberOut(CamelModel):
    id: str
    trip_id: str
    display_name: str
    role: MemberRole
    state: MemberState
    is_creator: bool
    is_child: bool
    joined_at: datetime


class MemberListOut(CamelModel):
    members: List[MemberOut]


class MemberRoleUpdate(CamelModel):
    role: MemberRole


class MemberRemovedOut(CamelModel):
    success: bool = True
    message: str = "Member removed successfully"
