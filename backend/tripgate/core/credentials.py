# backend/tripgate/core/credentials.py
"""
Trip PIN credentials.

The PIN is a 6-digit shared secret. Only its argon2id hash is stored on the
trip row; the plaintext leaves this module exactly once, in the response of
the create/rotate call that generated it.
"""
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.core.config import settings
from tripgate.core.errors import InternalError
from tripgate.core.logging import get_logger
from tripgate.models.trip import Trip

logger = get_logger(__name__)

PIN_LENGTH = 6
# ASCII only: \d also matches full-width digits
PIN_RE = re.compile(r"[0-9]{6}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_pin() -> str:
    return str(secrets.randbelow(900000) + 100000)  # 6 digits, no leading zero


def is_well_formed_pin(pin: str | None) -> bool:
    return isinstance(pin, str) and PIN_RE.fullmatch(pin) is not None


@dataclass(frozen=True)
class IssuedCredential:
    plaintext: str
    pin_hash: str


class CredentialIssuer:
    """Creates, rotates and verifies trip PIN hashes."""

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self._hasher = hasher or PasswordHasher(
            time_cost=settings.PIN_HASH_TIME_COST,
            memory_cost=settings.PIN_HASH_MEMORY_COST,
            parallelism=settings.PIN_HASH_PARALLELISM,
            type=Type.ID,
        )

    def hash(self, plaintext: str) -> str:
        return self._hasher.hash(plaintext)

    def create(self) -> IssuedCredential:
        pin = generate_pin()
        return IssuedCredential(plaintext=pin, pin_hash=self.hash(pin))

    def verify(self, plaintext: str, pin_hash: str | None) -> bool:
        if not pin_hash or not is_well_formed_pin(plaintext):
            return False
        try:
            return self._hasher.verify(pin_hash, plaintext)
        except (InvalidHashError, VerificationError):
            return False

    async def rotate(self, db: AsyncSession, trip: Trip, actor_id: str) -> str:
        """
        Replace the trip's PIN hash and return the new plaintext.

        The old PIN stops verifying as soon as the commit lands. Session tokens
        already issued are NOT affected; they stay gated by live membership.
        """
        # argon2 is CPU-bound; keep it off the event loop
        issued = await run_in_threadpool(self.create)
        trip.pin_hash = issued.pin_hash
        trip.pin_rotated_at = _utcnow()
        trip.pin_rotated_by = actor_id
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("pin_rotation_failed", trip_id=trip.id, actor_id=actor_id, error=str(exc))
            raise InternalError("Failed to rotate PIN") from exc

        logger.info("pin_rotated", trip_id=trip.id, actor_id=actor_id)
        return issued.plaintext


credential_issuer = CredentialIssuer()
