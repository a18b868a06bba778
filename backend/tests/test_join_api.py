# tests/test_join_api.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from tripgate.core.notifications import MEMBER_JOINED, notifier
from tripgate.models.notification import Notification
from tripgate.models.trip_member import TripMember

from conftest import auth_header, create_trip, token_for

JOIN_URL = "/api/v1/auth/join"


async def join(client, pin: str, display_name: str, trip_id: str | None = None, **extra):
    body = {"pin": pin, "displayName": display_name, **extra}
    if trip_id is not None:
        body["tripId"] = trip_id
    return await client.post(JOIN_URL, json=body)


@pytest.mark.asyncio
async def test_join_rotate_rejoin_scenario(client, db):
    trip, creator = await create_trip(db, pin="482913")

    r = await join(client, "482913", "Alice", trip_id=trip.id)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token"]
    assert body["member"]["role"] == "standard"
    assert body["member"]["state"] == "active"
    assert body["member"]["displayName"] == "Alice"
    assert body["trip"]["id"] == trip.id
    assert body["trip"]["memberCount"] == 2
    assert "pinHash" not in body["trip"]

    r = await join(client, "482913", "Alice", trip_id=trip.id)
    assert r.status_code == 400, r.text
    assert "already exists" in r.json()["error"]["message"]

    r = await client.post("/api/v1/trips/current/pin/rotate", headers=auth_header(token_for(creator)))
    assert r.status_code == 200, r.text
    new_pin = r.json()["pin"]
    assert len(new_pin) == 6 and new_pin.isdigit()

    if new_pin != "482913":
        r = await join(client, "482913", "Carol", trip_id=trip.id)
        assert r.status_code == 401, r.text
        assert r.json()["error"]["code"] == "INVALID_PIN"

    r = await join(client, new_pin, "Carol", trip_id=trip.id)
    assert r.status_code == 200, r.text


@pytest.mark.asyncio
async def test_join_without_trip_id_finds_trip_by_pin(client, db):
    await create_trip(db, pin="111111", name="First")
    target, _ = await create_trip(db, pin="222222", name="Second")
    await create_trip(db, pin="333333", name="Third")

    r = await join(client, "222222", "Dana")
    assert r.status_code == 200, r.text
    assert r.json()["trip"]["id"] == target.id

    r = await join(client, "999999", "Eve")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_PIN"


@pytest.mark.asyncio
async def test_blank_trip_id_means_scan(client, db):
    trip, _ = await create_trip(db, pin="482913")

    r = await join(client, "482913", "Alice", trip_id="  ")
    assert r.status_code == 200, r.text
    assert r.json()["trip"]["id"] == trip.id


@pytest.mark.asyncio
async def test_wrong_pin_for_named_trip_is_401(client, db):
    trip, _ = await create_trip(db, pin="482913")

    r = await join(client, "482914", "Alice", trip_id=trip.id)
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_PIN"


@pytest.mark.asyncio
async def test_unknown_trip_id_is_404(client, db):
    await create_trip(db, pin="482913")

    r = await join(client, "482913", "Alice", trip_id="does-not-exist")
    assert r.status_code == 404
    assert r.json()["status"] == "error"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "pin",
    ["12345", "1234567", "abcdef", "\uff14\uff18\uff12\uff19\uff11\uff13", "482913\n", " 482913 "],
)
async def test_malformed_pin_is_400(client, db, pin):
    trip, _ = await create_trip(db, pin="482913")

    r = await join(client, pin, "Alice", trip_id=trip.id)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "PIN must be 6 digits"


@pytest.mark.asyncio
async def test_display_names_are_case_sensitive_and_trimmed(client, db):
    trip, _ = await create_trip(db, pin="482913")

    assert (await join(client, "482913", "Alice", trip_id=trip.id)).status_code == 200
    assert (await join(client, "482913", "alice", trip_id=trip.id)).status_code == 200

    r = await join(client, "482913", "  Alice  ", trip_id=trip.id)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_name_is_free_again_after_removal(client, db):
    trip, creator = await create_trip(db, pin="482913")
    first = (await join(client, "482913", "Alice", trip_id=trip.id)).json()["member"]

    r = await client.delete(
        f"/api/v1/trips/current/members/{first['id']}",
        headers=auth_header(token_for(creator)),
    )
    assert r.status_code == 200, r.text

    r = await join(client, "482913", "Alice", trip_id=trip.id)
    assert r.status_code == 200, r.text
    assert r.json()["member"]["id"] != first["id"]


@pytest.mark.asyncio
async def test_join_records_child_flag_and_notifies(client, db):
    trip, _ = await create_trip(db, pin="482913")

    r = await join(client, "482913", "Kid", trip_id=trip.id, isChild=True)
    assert r.status_code == 200, r.text
    assert r.json()["member"]["isChild"] is True

    rows = (await db.execute(select(Notification).where(Notification.trip_id == trip.id))).scalars().all()
    assert [n.type for n in rows] == [MEMBER_JOINED]
    assert rows[0].read_by == [r.json()["member"]["id"]]


@pytest.mark.asyncio
async def test_notification_failure_does_not_block_join(client, db, monkeypatch):
    trip, _ = await create_trip(db, pin="482913")

    async def _store_down(db, notification):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(notifier, "_write", _store_down)

    r = await join(client, "482913", "Alice", trip_id=trip.id)
    assert r.status_code == 200, r.text

    member = (
        await db.execute(select(TripMember).where(TripMember.id == r.json()["member"]["id"]))
    ).scalar_one()
    assert member.display_name == "Alice"
    assert (await db.execute(select(Notification))).scalars().all() == []
