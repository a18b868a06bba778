from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tripgate.core.config import settings
from tripgate.core.errors import RateLimitError, ServiceError
from tripgate.core.logging import get_correlation_id, get_logger
from tripgate.schemas.common import ErrorBody, ErrorEnvelope

logger = get_logger(__name__)

_STATUS_TO_CODE = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "RATE_LIMITED",
    500: "server_error",
}


def _error_response(
    status_code: int,
    message: str,
    details: dict | list | None = None,
    code: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error_code = code or _STATUS_TO_CODE.get(status_code, "server_error")
    envelope = ErrorEnvelope(error=ErrorBody(code=error_code, message=message, details=details or None))
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as {"status": "error", "error": {code, message, details}}."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )

        if exc.status_code >= 500:
            # internal detail never leaves the process outside development
            message = exc.message if settings.is_development else "internal server error"
            return _error_response(
                exc.status_code,
                message,
                {"correlationId": get_correlation_id()},
                code=exc.error_code,
            )

        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        return _error_response(exc.status_code, exc.message, exc.details, code=exc.error_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        logger.warning(
            "request_validation_error",
            path=request.url.path,
            method=request.method,
            errors=errors,
        )
        message = "Invalid request"
        if errors:
            first = errors[0]
            message = str(first.get("msg", message)).removeprefix("Value error, ")
        return _error_response(400, message, {"errors": errors}, code="validation_error")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error("http_error", path=request.url.path, method=request.method, status_code=exc.status_code)
        details = exc.detail if isinstance(exc.detail, dict) else None
        message = exc.detail if isinstance(exc.detail, str) else "http error"
        return _error_response(exc.status_code, message, details, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        message = f"{type(exc).__name__}: {exc}" if settings.is_development else "internal server error"
        return _error_response(500, message, {"correlationId": get_correlation_id()}, code="server_error")
