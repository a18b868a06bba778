# tests/test_credentials.py
from __future__ import annotations

import pytest

import tripgate.core.credentials as credentials_module
from tripgate.core.credentials import (
    credential_issuer,
    generate_pin,
    is_well_formed_pin,
)
from tripgate.core.errors import ValidationError
from tripgate.core.membership import join_trip

from conftest import create_trip


def test_generated_pins_are_six_digits():
    for _ in range(200):
        pin = generate_pin()
        assert is_well_formed_pin(pin)
        assert not pin.startswith("0")


@pytest.mark.parametrize(
    "pin",
    [
        "12345",
        "1234567",
        "12a456",
        " 123456",
        "",
        None,
        "\uff14\uff18\uff12\uff19\uff11\uff13",  # full-width digits
        "\u0664\u0668\u0662\u0669\u0661\u0663",  # Arabic-Indic digits
        "482913\n",
    ],
)
def test_malformed_pins_are_rejected(pin):
    assert not is_well_formed_pin(pin)


def test_create_stores_only_the_hash():
    issued = credential_issuer.create()

    assert issued.plaintext not in issued.pin_hash
    assert issued.pin_hash.startswith("$argon2id$")
    assert credential_issuer.verify(issued.plaintext, issued.pin_hash)


def test_verify_fails_for_wrong_or_malformed_pin():
    pin_hash = credential_issuer.hash("482913")

    assert not credential_issuer.verify("482914", pin_hash)
    assert not credential_issuer.verify("48291", pin_hash)
    assert not credential_issuer.verify("482913", None)
    # corrupted stored hash is a mismatch, not a crash
    assert not credential_issuer.verify("482913", "not-an-argon2-hash")


@pytest.mark.asyncio
async def test_rotate_replaces_hash_and_records_actor(db):
    trip, creator = await create_trip(db, pin="482913")

    new_pin = await credential_issuer.rotate(db, trip, actor_id=creator.id)

    await db.refresh(trip)
    assert is_well_formed_pin(new_pin)
    assert credential_issuer.verify(new_pin, trip.pin_hash)
    if new_pin != "482913":
        assert not credential_issuer.verify("482913", trip.pin_hash)
    assert trip.pin_rotated_by == creator.id
    assert trip.pin_rotated_at is not None


@pytest.mark.asyncio
async def test_rotate_hashes_off_the_event_loop(db, monkeypatch):
    trip, creator = await create_trip(db, pin="482913")
    offloaded = []
    real = credentials_module.run_in_threadpool

    async def _recording(func, *args, **kwargs):
        offloaded.append(func)
        return await real(func, *args, **kwargs)

    monkeypatch.setattr(credentials_module, "run_in_threadpool", _recording)

    await credential_issuer.rotate(db, trip, actor_id=creator.id)

    assert offloaded == [credential_issuer.create]


@pytest.mark.asyncio
@pytest.mark.parametrize("pin", ["４８２９１３", "482913\n"])
async def test_join_refuses_non_ascii_or_trailing_newline_pin(db, pin):
    trip, _ = await create_trip(db, pin="482913")

    with pytest.raises(ValidationError):
        await join_trip(db, pin=pin, display_name="Alice", trip_id=trip.id)
