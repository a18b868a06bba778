from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from tripgate.core.config import settings
from tripgate.core.errors import AuthCode, AuthenticationError, InternalError
from tripgate.core.roles import MemberRole

# auto_error=False: a missing header must surface as TOKEN_INVALID, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

_REQUIRED_STR_CLAIMS = ("tripId", "memberId", "role", "displayName")


def _normalize_token(token: Optional[str]) -> str:
    """
    Session tokens get copied out of the join/create responses by hand (into
    Swagger's Authorize box, curl, a client config). Undo what that copy
    usually adds:
    - leading/trailing whitespace or a trailing newline
    - the JSON string quotes around the token
    - a "Bearer " prefix pasted into a field that already adds one
    """
    if token is None:
        return ""

    t = token.strip()

    if (t.startswith('"') and t.endswith('"')) or (t.startswith("'") and t.endswith("'")):
        t = t[1:-1].strip()

    if t.lower().startswith("bearer "):
        t = t[7:].strip()

    return t


@dataclass(frozen=True)
class SessionClaims:
    """
    What the token *claims*. A cache of the state at issue time, nothing more:
    authorization decisions read the live AuthContext, never this.
    """

    trip_id: str
    member_id: str
    role: MemberRole
    display_name: str
    issued_at: datetime
    expires_at: datetime


class SessionTokenService:
    """Issues and verifies stateless HS256 session tokens."""

    def __init__(self, secret: str, algorithm: str, lifetime: timedelta) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.lifetime = lifetime

    def issue(
        self,
        trip_id: str,
        member_id: str,
        role: MemberRole,
        display_name: str,
        now: Optional[datetime] = None,
    ) -> str:
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + self.lifetime

        to_encode: dict[str, Any] = {
            "sub": str(member_id),
            "tripId": str(trip_id),
            "memberId": str(member_id),
            "role": MemberRole(role).value,
            "displayName": display_name,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        try:
            return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)
        except JWTError as exc:
            raise InternalError("Failed to sign session token") from exc

    def verify(self, token: Optional[str]) -> SessionClaims:
        """
        Prove the token was issued here and is unexpired. Says nothing about
        whether the member still belongs to the trip.
        """
        token = _normalize_token(token)
        if not token:
            raise AuthenticationError("No token provided", code=AuthCode.TOKEN_INVALID)

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except ExpiredSignatureError:
            raise AuthenticationError("Token expired", code=AuthCode.TOKEN_EXPIRED)
        except JWTError:
            # bad format, bad signature, wrong algorithm, bad claim types
            raise AuthenticationError("Invalid token", code=AuthCode.TOKEN_INVALID)

        if not all(isinstance(payload.get(k), str) and payload.get(k) for k in _REQUIRED_STR_CLAIMS):
            raise AuthenticationError(
                "Invalid token payload - missing required fields",
                code=AuthCode.TOKEN_INVALID,
            )

        try:
            role = MemberRole(payload["role"])
        except ValueError:
            raise AuthenticationError("Invalid token role", code=AuthCode.TOKEN_INVALID)

        return SessionClaims(
            trip_id=payload["tripId"],
            member_id=payload["memberId"],
            role=role,
            display_name=payload["displayName"],
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )


session_tokens = SessionTokenService(
    secret=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
    lifetime=timedelta(days=settings.SESSION_TOKEN_LIFETIME_DAYS),
)
