# backend/tripgate/core/resolver.py
"""
Which trip does a submitted PIN open?

The only implementation today scans every trip and runs a full argon2 verify
against each hash until one matches: O(trips x verify cost). That is fine for
a small number of trips and is kept on purpose; swap in an indexed resolver
behind ``CredentialResolver`` if the trip count grows. Note the scan time also
depends on where the matching trip sits in the order.
"""
from __future__ import annotations

from typing import Optional, Protocol

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.core.credentials import CredentialIssuer, credential_issuer
from tripgate.crud.directory import list_trip_credentials


class CredentialResolver(Protocol):
    async def resolve(self, db: AsyncSession, pin: str) -> Optional[str]:
        """Return the id of the trip whose PIN hash verifies ``pin``, or None."""
        ...


class LinearScanResolver:
    def __init__(self, issuer: CredentialIssuer) -> None:
        self._issuer = issuer

    async def resolve(self, db: AsyncSession, pin: str) -> Optional[str]:
        for trip_id, pin_hash in await list_trip_credentials(db):
            # argon2 is CPU-bound; keep it off the event loop
            if await run_in_threadpool(self._issuer.verify, pin, pin_hash):
                return trip_id
        return None


credential_resolver: CredentialResolver = LinearScanResolver(credential_issuer)
