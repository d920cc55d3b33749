from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from badgeit_api.core.config import settings
from badgeit_api.core.constants import ErrorText
from badgeit_api.core.exceptions import BadgeValidationError, StoreUnavailableError
from badgeit_api.core.logging_setup import configure_logging
from badgeit_api.core.middleware import RequestIDMiddleware
from badgeit_api.core.redis import close_redis, get_redis
from badgeit_api.models.schemas import AppInfoResponse

configure_logging(settings.LOG_LEVEL)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "app.startup",
        environment=settings.ENVIRONMENT,
        enqueue_strategy=settings.ENQUEUE_STRATEGY,
        dedup_fail_open=settings.DEDUP_FAIL_OPEN,
    )

    # Redis being down at boot is not fatal: requests answer 503 until it returns.
    try:
        await get_redis()
    except Exception as e:
        logger.warning("redis.connection_failed", error=str(e))

    yield

    logger.info("app.shutdown")
    await close_redis()


async def _validation_error_handler(request: Request, exc: BadgeValidationError) -> JSONResponse:
    logger.info("badges.rejected", field=exc.field, error=exc.message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


async def _store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.warning("store.unavailable", operation=exc.operation, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": ErrorText.STORE_UNAVAILABLE},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Badgeit API",
        description="Queues badge computation for remote repositories",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        max_age=3600,
    )
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(BadgeValidationError, _validation_error_handler)
    app.add_exception_handler(StoreUnavailableError, _store_unavailable_handler)

    from badgeit_api.api.v1 import badges

    app.include_router(badges.router, prefix="/badges", tags=["badges"])

    @app.get("/", response_model=AppInfoResponse)
    async def app_info():
        return AppInfoResponse(version=settings.APP_VERSION)

    @app.post("/test/callback")
    async def test_callback(request: Request):
        """Local callback target: logs whatever the worker posts back."""
        body = await request.body()
        logger.info("callback.received", body=body.decode("utf-8", errors="replace"))
        return {"test": "ok"}

    @app.get("/health")
    async def health_check():
        """
        Liveness + readiness check.

        Returns 200 only when Redis answers PING, 503 otherwise.
        """
        redis_ok = False
        try:
            r = await get_redis()
            await r.ping()
            redis_ok = True
        except Exception as exc:
            logger.warning("health.redis_unreachable", error=str(exc))

        body = {
            "status": "healthy" if redis_ok else "degraded",
            "redis": "ok" if redis_ok else "unavailable",
        }
        http_status = status.HTTP_200_OK if redis_ok else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(content=body, status_code=http_status)

    return app


app = create_app()
