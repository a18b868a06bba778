import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from tripgate.core.config import settings
from tripgate.core.logging import get_logger, set_correlation_id
import tripgate.models  # noqa: F401  # force model registration

from tripgate.api.cors import (
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_MAX_AGE,
    FixedPreflightCORSMiddleware,
)
from tripgate.api.error_handling import register_exception_handlers
from tripgate.api.v1.auth import router as auth_router
from tripgate.api.v1.trips import router as trips_router
from tripgate.db.session import dispose_engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dispose_engine()


def create_application() -> FastAPI:
    app = FastAPI(title="tripgate API", lifespan=lifespan)

    # Preflight answers are fixed: same methods/headers for every route, no body
    app.add_middleware(
        FixedPreflightCORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        max_age=CORS_MAX_AGE,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        cid = set_correlation_id(request.headers.get("X-Request-ID"))
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = cid
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "tripgate"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(trips_router, prefix="/api/v1")

    return app


app = create_application()
