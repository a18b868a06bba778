# backend/tripgate/api/cors.py
from __future__ import annotations

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization"]
CORS_MAX_AGE = 86400


class FixedPreflightCORSMiddleware(CORSMiddleware):
    """
    CORS with a fixed preflight answer.

    Every OPTIONS request is answered here, before routing: 200, no body, the
    same allowed methods/headers for every path. The origin is echoed back
    only when it is on the allow-list; other origins get the same response
    without Access-Control-Allow-Origin and the browser blocks them.
    Non-OPTIONS requests get Starlette's normal CORS handling.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "OPTIONS":
            response = self.fixed_preflight_response(Headers(scope=scope).get("origin"))
            await response(scope, receive, send)
            return
        await super().__call__(scope, receive, send)

    def fixed_preflight_response(self, origin: str | None) -> Response:
        headers = {
            "Access-Control-Allow-Methods": ", ".join(CORS_ALLOW_METHODS),
            "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
            "Access-Control-Max-Age": str(CORS_MAX_AGE),
        }
        if self.allow_all_origins:
            headers["Access-Control-Allow-Origin"] = "*"
        else:
            headers["Vary"] = "Origin"
            if origin and self.is_allowed_origin(origin):
                headers["Access-Control-Allow-Origin"] = origin
        return Response(status_code=200, headers=headers)
