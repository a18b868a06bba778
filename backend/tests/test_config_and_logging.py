# tests/test_config_and_logging.py
from __future__ import annotations

import pytest

from tripgate.core.config import DEV_JWT_SECRET, Settings
from tripgate.core.logging import _redact_secrets, get_correlation_id, set_correlation_id
from tripgate.db.session import engine_options

DB_URL = "postgresql+asyncpg://u:p@localhost:5432/tripgate?sslmode=require&channel_binding=prefer&application_name=tg"


def test_async_url_drops_params_asyncpg_rejects():
    s = Settings(DATABASE_URL_ASYNC=DB_URL)
    assert "sslmode" not in s.DATABASE_URL_ASYNC_CLEAN
    assert "channel_binding" not in s.DATABASE_URL_ASYNC_CLEAN
    assert "application_name=tg" in s.DATABASE_URL_ASYNC_CLEAN


@pytest.mark.parametrize("secret", [DEV_JWT_SECRET, "short-secret"])
def test_production_refuses_weak_secret(secret):
    with pytest.raises(ValueError):
        Settings(DATABASE_URL_ASYNC=DB_URL, ENVIRONMENT="production", JWT_SECRET=secret)


def test_only_hs256_is_accepted():
    with pytest.raises(ValueError):
        Settings(DATABASE_URL_ASYNC=DB_URL, JWT_ALGORITHM="none")


def test_rate_limit_must_be_positive():
    with pytest.raises(ValueError):
        Settings(DATABASE_URL_ASYNC=DB_URL, RATE_LIMIT_MAX_REQUESTS=0)


def test_secrets_are_redacted_from_log_events():
    event = _redact_secrets(
        None,
        "info",
        {"event": "join", "pin": "482913", "token": "eyJ...", "trip_id": "t1", "retry_after": 3},
    )
    assert event["pin"] == "***"
    assert event["token"] == "***"
    assert event["trip_id"] == "t1"
    assert event["retry_after"] == 3


def test_correlation_id_is_generated_when_missing():
    cid = set_correlation_id(None)
    assert cid and get_correlation_id() == cid
    assert set_correlation_id("abc") == "abc"


def test_pool_health_checks_only_for_server_databases():
    assert engine_options("sqlite+aiosqlite:///:memory:") == {}
    opts = engine_options("postgresql+asyncpg://u:p@localhost:5432/tripgate")
    assert opts["pool_pre_ping"] is True
    assert opts["pool_recycle"] > 0
