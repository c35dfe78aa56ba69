import functools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import redis
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from appconfig.config import settings
from appconfig.db.base import engine
from appconfig.observability import initialize_sentry, shutdown_sentry
from appconfig.services.billing import BillingConfigurationError, BillingProviderError
from appconfig.services.media_storage import MediaStorageConfigurationError
from appconfig.routers import (
    applications,
    billing,
    content,
    emotions,
    entities,
    gallery,
    locations,
    marketing,
    public,
    stripe_webhooks,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
LEGACY_API_PREFIX = "/api"


def _is_schema_mismatch_programming_error(exc: ProgrammingError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in ("42703", "42P01"):
        return True
    message = str(orig or exc).lower()
    return any(
        marker in message
        for marker in (
            "undefined column",
            "does not exist",
            "no such column",
            "no such table",
        )
    )


@functools.lru_cache()
def _redis_client(url: str) -> redis.Redis:
    return redis.from_url(url, decode_responses=True, socket_connect_timeout=2)


def _api_router() -> APIRouter:
    api = APIRouter()
    api.include_router(applications.router)
    api.include_router(content.router)
    api.include_router(marketing.router)
    api.include_router(public.router)
    api.include_router(public.storage_router)
    api.include_router(billing.router)
    api.include_router(stripe_webhooks.router)
    api.include_router(entities.router)
    api.include_router(emotions.router)
    api.include_router(locations.router)
    api.include_router(gallery.router)
    return api


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    initialize_sentry()
    try:
        yield
    finally:
        shutdown_sentry()


def create_app() -> FastAPI:
    app = FastAPI(
        title="App Configuration Platform API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MediaStorageConfigurationError)
    async def media_storage_configuration_error_handler(
        _request: Request, exc: MediaStorageConfigurationError
    ) -> ORJSONResponse:
        logger.error("Media storage misconfigured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(BillingConfigurationError)
    async def billing_configuration_error_handler(
        _request: Request, exc: BillingConfigurationError
    ) -> ORJSONResponse:
        logger.error("Billing misconfigured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(BillingProviderError)
    async def billing_provider_error_handler(_request: Request, exc: BillingProviderError) -> ORJSONResponse:
        logger.warning("Stripe request failed", extra={"error": str(exc)})
        return ORJSONResponse(status_code=502, content={"detail": "Billing provider request failed."})

    @app.exception_handler(ProgrammingError)
    async def programming_error_handler(_request: Request, exc: ProgrammingError) -> ORJSONResponse:
        logger.exception("Database programming error", exc_info=exc)
        if _is_schema_mismatch_programming_error(exc):
            return ORJSONResponse(
                status_code=503,
                content={
                    "detail": "Database schema is out of date. Run `alembic upgrade head` and redeploy."
                },
            )
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            logger.warning("Database health check failed", extra={"error": str(exc)})
            return {"db": f"error: {exc}"}

    @app.get("/health/redis")
    def health_redis() -> dict[str, Optional[str]]:
        if not settings.REDIS_URL:
            return {"redis": "disabled"}
        try:
            _redis_client(settings.REDIS_URL).ping()
            return {"redis": "ok"}
        except redis.RedisError as exc:
            logger.warning("Redis health check failed", extra={"error": str(exc)})
            return {"redis": f"error: {exc}"}

    api = _api_router()
    app.include_router(api, prefix=API_PREFIX)
    app.include_router(api, prefix=LEGACY_API_PREFIX, include_in_schema=False)

    return app


app = create_app()
