from __future__ import annotations

import os

# Settings are read at import time: configure before anything from tripgate loads.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_JSON", "false")
# argon2 at production cost makes the suite crawl
os.environ["PIN_HASH_TIME_COST"] = "1"
os.environ["PIN_HASH_MEMORY_COST"] = "1024"
os.environ["PIN_HASH_PARALLELISM"] = "1"

from datetime import date, datetime, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from tripgate.core.credentials import credential_issuer  # noqa: E402
from tripgate.core.rate_limit import rate_limiter  # noqa: E402
from tripgate.core.roles import MemberRole, MemberState  # noqa: E402
from tripgate.core.security import session_tokens  # noqa: E402
from tripgate.db.session import get_db  # noqa: E402

# Ensure Base + models are registered before create_all
from tripgate.db.base import Base  # noqa: E402
import tripgate.models  # noqa: E402,F401
from tripgate.models.trip import Trip, new_trip_id  # noqa: E402
from tripgate.models.trip_member import TripMember, new_member_id  # noqa: E402


# ---------------------------------------------------------
# Engine: one private in-memory database per test
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    Setup helpers commit so request handlers see the rows.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# Rate limiter: counters are process-wide, reset per test
# ---------------------------------------------------------
@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.store.reset()
    yield
    rate_limiter.store.reset()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from tripgate.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------
# Directory helpers
# ---------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_trip(db, pin: str, name: str = "Lake Weekend", creator_name: str = "Organizer"):
    """Trip + ELEVATED creator with a known PIN. Returns (trip, creator)."""
    creator_id = new_member_id()
    trip = Trip(
        id=new_trip_id(),
        name=name,
        start_date=date(2026, 7, 1),
        end_date=date(2026, 7, 5),
        timezone="Europe/Berlin",
        pin_hash=credential_issuer.hash(pin),
        created_by=creator_id,
        roles={creator_id: MemberRole.ELEVATED.value},
        member_count=1,
    )
    creator = TripMember(
        id=creator_id,
        trip_id=trip.id,
        display_name=creator_name,
        role=MemberRole.ELEVATED,
        state=MemberState.ACTIVE,
        is_creator=True,
        joined_at=utcnow(),
    )
    db.add_all([trip, creator])
    await db.commit()
    return trip, creator


async def add_member(db, trip: Trip, display_name: str, role: MemberRole = MemberRole.STANDARD) -> TripMember:
    member = TripMember(
        id=new_member_id(),
        trip_id=trip.id,
        display_name=display_name,
        role=role,
        state=MemberState.ACTIVE,
        joined_at=utcnow(),
    )
    db.add(member)
    trip.roles = {**trip.roles, member.id: role.value}
    trip.member_count += 1
    await db.commit()
    return member


def token_for(member: TripMember, role: MemberRole | None = None, now: datetime | None = None) -> str:
    return session_tokens.issue(
        trip_id=member.trip_id,
        member_id=member.id,
        role=role or member.role,
        display_name=member.display_name,
        now=now,
    )


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
