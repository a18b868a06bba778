# backend/tripgate/core/roles.py

import enum


class MemberRole(str, enum.Enum):
    ELEVATED = "elevated"   # trip creator and promoted admins
    STANDARD = "standard"   # everyone who joined with the PIN


class MemberState(str, enum.Enum):
    ACTIVE = "active"
    REMOVED = "removed"     # terminal; never reactivated
