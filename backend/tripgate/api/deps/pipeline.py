# backend/tripgate/api/deps/pipeline.py
"""
Request access pipeline.

Protected routes depend on an ``AccessPipeline``: an ordered list of stages,
each of which either lets the request continue (possibly adding to the
exchange) or rejects it with a ServiceError. Ordering is a checked contract:
every stage declares what it ``requires`` and ``provides``, and
``AccessPipelineBuilder.build()`` refuses an order in which a stage would run
before its inputs exist.

    verify_token  -> provides "claims"
    rate_limit    -> requires "claims"
    live_state    -> requires "claims", provides "context"
    require_elevated -> requires "context"
"""

from dataclasses import dataclass, field
from typing import ClassVar, FrozenSet, Optional, Protocol

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.core.context import AuthContext
from tripgate.core.errors import (
    AuthCode,
    AuthenticationError,
    AuthorizationError,
    ServiceError,
    state_drift,
)
from tripgate.core.logging import get_logger
from tripgate.core.rate_limit import RateLimiter
from tripgate.core.roles import MemberRole, MemberState
from tripgate.core.security import SessionClaims, SessionTokenService, bearer_scheme
from tripgate.crud.directory import get_member, get_trip
from tripgate.db.session import get_db

logger = get_logger(__name__)


@dataclass
class AccessExchange:
    """Mutable per-request state passed from stage to stage."""

    db: AsyncSession
    raw_token: Optional[str]
    claims: Optional[SessionClaims] = None
    context: Optional[AuthContext] = None


@dataclass(frozen=True)
class Verdict:
    error: Optional[ServiceError] = None

    @property
    def rejected(self) -> bool:
        return self.error is not None

    @classmethod
    def proceed(cls) -> "Verdict":
        return cls()

    @classmethod
    def reject(cls, error: ServiceError) -> "Verdict":
        return cls(error=error)


class Stage(Protocol):
    name: ClassVar[str]
    requires: ClassVar[FrozenSet[str]]
    provides: ClassVar[FrozenSet[str]]

    async def intercept(self, exchange: AccessExchange) -> Verdict:
        ...


# ---------------------------------------------------------
# Stages
# ---------------------------------------------------------
class VerifyTokenStage:
    name = "verify_token"
    requires: ClassVar[FrozenSet[str]] = frozenset()
    provides: ClassVar[FrozenSet[str]] = frozenset({"claims"})

    def __init__(self, tokens: SessionTokenService) -> None:
        self._tokens = tokens

    async def intercept(self, exchange: AccessExchange) -> Verdict:
        try:
            exchange.claims = self._tokens.verify(exchange.raw_token)
        except AuthenticationError as exc:
            return Verdict.reject(exc)
        return Verdict.proceed()


class RateLimitStage:
    name = "rate_limit"
    requires: ClassVar[FrozenSet[str]] = frozenset({"claims"})
    provides: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, limiter: RateLimiter) -> None:
        self._limiter = limiter

    async def intercept(self, exchange: AccessExchange) -> Verdict:
        claims = exchange.claims
        try:
            self._limiter.check(claims.trip_id, claims.member_id)
        except ServiceError as exc:
            return Verdict.reject(exc)
        return Verdict.proceed()


class LiveStateStage:
    """
    Re-check the token's claims against the directory on every request.

    This is what makes removal, demotion and deactivation take effect at once
    even though issued tokens cannot be revoked individually.
    """

    name = "live_state"
    requires: ClassVar[FrozenSet[str]] = frozenset({"claims"})
    provides: ClassVar[FrozenSet[str]] = frozenset({"context"})

    async def intercept(self, exchange: AccessExchange) -> Verdict:
        claims = exchange.claims
        db = exchange.db

        trip = await get_trip(db, claims.trip_id)
        if trip is None:
            return self._reject(claims, AuthCode.TRIP_NOT_FOUND)

        member = await get_member(db, claims.trip_id, claims.member_id)
        live_role = (trip.roles or {}).get(claims.member_id)

        # A removed member's role-map entry is deleted together with the state
        # flip, so an absent entry is decided by the member record below.
        if live_role is not None and live_role != claims.role.value:
            return self._reject(claims, AuthCode.ROLE_MISMATCH)

        if member is None:
            return self._reject(claims, AuthCode.MEMBER_NOT_FOUND)

        if member.state is MemberState.REMOVED:
            return self._reject(claims, AuthCode.MEMBER_INACTIVE)
        elif member.state is MemberState.ACTIVE:
            if live_role is None or member.role is not MemberRole(live_role):
                return self._reject(claims, AuthCode.ROLE_MISMATCH)
        else:  # pragma: no cover - new lifecycle states must be handled here
            raise AssertionError(f"Unhandled member state: {member.state!r}")

        exchange.context = AuthContext.from_member(member)
        return Verdict.proceed()

    @staticmethod
    def _reject(claims: SessionClaims, code: AuthCode) -> Verdict:
        logger.info(
            "live_state_rejected",
            trip_id=claims.trip_id,
            member_id=claims.member_id,
            code=code.value,
        )
        return Verdict.reject(state_drift(code))


class ElevatedRoleStage:
    name = "require_elevated"
    requires: ClassVar[FrozenSet[str]] = frozenset({"context"})
    provides: ClassVar[FrozenSet[str]] = frozenset()

    async def intercept(self, exchange: AccessExchange) -> Verdict:
        if not exchange.context.is_elevated:
            return Verdict.reject(
                AuthorizationError(
                    "Administrator access required",
                    error_code="ELEVATED_ROLE_REQUIRED",
                )
            )
        return Verdict.proceed()


# ---------------------------------------------------------
# Pipeline + builder
# ---------------------------------------------------------
@dataclass(frozen=True)
class AccessPipeline:
    stages: tuple[Stage, ...] = field(default_factory=tuple)

    @staticmethod
    def builder() -> "AccessPipelineBuilder":
        return AccessPipelineBuilder()

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    async def run(self, db: AsyncSession, raw_token: Optional[str]) -> AuthContext:
        exchange = AccessExchange(db=db, raw_token=raw_token)
        for stage in self.stages:
            verdict = await stage.intercept(exchange)
            if verdict.rejected:
                raise verdict.error
        return exchange.context

    async def __call__(
        self,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
        db: AsyncSession = Depends(get_db),
    ) -> AuthContext:
        """FastAPI dependency entry point."""
        raw_token = credentials.credentials if credentials else None
        return await self.run(db, raw_token)


class AccessPipelineBuilder:
    def __init__(self) -> None:
        self._stages: list[Stage] = []

    def add(self, stage: Stage) -> "AccessPipelineBuilder":
        self._stages.append(stage)
        return self

    def verify_token(self, tokens: SessionTokenService) -> "AccessPipelineBuilder":
        return self.add(VerifyTokenStage(tokens))

    def rate_limit(self, limiter: RateLimiter) -> "AccessPipelineBuilder":
        return self.add(RateLimitStage(limiter))

    def live_state(self) -> "AccessPipelineBuilder":
        return self.add(LiveStateStage())

    def require_elevated(self) -> "AccessPipelineBuilder":
        return self.add(ElevatedRoleStage())

    def build(self) -> AccessPipeline:
        available: set[str] = set()
        for stage in self._stages:
            missing = stage.requires - available
            if missing:
                raise ValueError(
                    f"Stage {stage.name!r} requires {sorted(missing)} but no earlier stage provides it"
                )
            available |= stage.provides

        # Handlers receive the live context; a pipeline that never builds one is useless.
        if "context" not in available:
            raise ValueError("Access pipeline must include a live_state stage")

        return AccessPipeline(stages=tuple(self._stages))
