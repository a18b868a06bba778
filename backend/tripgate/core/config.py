# backend/tripgate/core/config.py

from __future__ import annotations

from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-change-me"


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg does NOT accept sslmode or channel_binding as connect kwargs.
    Drop them from the query string so SQLAlchemy never forwards them.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"

    # -----------------------------
    # DB
    # -----------------------------
    DATABASE_URL_ASYNC: str
    # Only used by alembic
    DATABASE_URL_SYNC: Optional[str] = None

    # -----------------------------
    # Session tokens (JWT)
    # -----------------------------
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    SESSION_TOKEN_LIFETIME_DAYS: int = 30

    # -----------------------------
    # PIN hashing (argon2id)
    # -----------------------------
    PIN_HASH_TIME_COST: int = 3
    PIN_HASH_MEMORY_COST: int = 65536  # KiB
    PIN_HASH_PARALLELISM: int = 4

    # -----------------------------
    # Rate limiting (per trip member)
    # -----------------------------
    RATE_LIMIT_MAX_REQUESTS: int = 60
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # -----------------------------
    # HTTP surface
    # -----------------------------
    SITE_URL: str = "http://localhost:5173"
    CORS_ALLOW_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # -----------------------------
    # Logging
    # -----------------------------
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_DEV_MODE: bool = False

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def is_development(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() == "development"

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == DEV_JWT_SECRET:
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if self.SESSION_TOKEN_LIFETIME_DAYS <= 0:
            raise ValueError("SESSION_TOKEN_LIFETIME_DAYS must be positive.")

        if self.RATE_LIMIT_MAX_REQUESTS <= 0 or self.RATE_LIMIT_WINDOW_SECONDS <= 0:
            raise ValueError("RATE_LIMIT_MAX_REQUESTS and RATE_LIMIT_WINDOW_SECONDS must be positive.")


settings = Settings()
