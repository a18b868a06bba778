from __future__ import annotations

import enum
from typing import Optional


class AuthCode(str, enum.Enum):
    """Machine-readable reasons carried by 401 responses.

    The token codes mean "re-authenticate"; the state-drift codes tell the
    client its membership changed underneath the session.
    """

    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    TRIP_NOT_FOUND = "TRIP_NOT_FOUND"
    ROLE_MISMATCH = "ROLE_MISMATCH"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    MEMBER_INACTIVE = "MEMBER_INACTIVE"
    INVALID_PIN = "INVALID_PIN"


STATE_DRIFT_MESSAGE = "Session is no longer valid, please sign in again"


class ServiceError(Exception):
    """Base class for domain errors rendered by the API error handlers.

    Each subclass pins an HTTP status and a stable error code; ``details``
    is an optional dict surfaced in the response envelope.
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}


class ValidationError(ServiceError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(ServiceError):
    status_code = 401
    error_code = "unauthorized"

    def __init__(self, message: str, *, code: AuthCode, details: Optional[dict] = None) -> None:
        super().__init__(message, error_code=code.value, details=details)
        self.code = code


class AuthorizationError(ServiceError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "not_found"


class RateLimitError(ServiceError):
    status_code = 429
    error_code = "RATE_LIMITED"

    def __init__(self, retry_after: int) -> None:
        super().__init__("Too many requests", details={"retryAfter": retry_after})
        self.retry_after = retry_after


class InternalError(ServiceError):
    """Storage or signing failure. Safe to retry; detail is never shown to clients."""

    status_code = 500
    error_code = "server_error"


def state_drift(code: AuthCode) -> AuthenticationError:
    return AuthenticationError(STATE_DRIFT_MESSAGE, code=code)


__all__ = [
    "AuthCode",
    "ServiceError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "RateLimitError",
    "InternalError",
    "STATE_DRIFT_MESSAGE",
    "state_drift",
]
