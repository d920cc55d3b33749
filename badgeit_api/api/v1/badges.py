"""Badges router — badge request intake."""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from badgeit_api.core.config import settings
from badgeit_api.core.constants import ErrorText
from badgeit_api.core.exceptions import StoreUnavailableError
from badgeit_api.core.redis import get_redis
from badgeit_api.models.schemas import BadgeRequest, BadgeResponse, ErrorResponse
from badgeit_api.services.intake import BadgeIntakeService
from badgeit_api.services.store import BadgeStore
from badgeit_api.services.validation import validate_badge_request

logger = structlog.get_logger(__name__)
router = APIRouter()


async def get_badge_store() -> BadgeStore:
    try:
        client = await get_redis()
    except RedisError as exc:
        logger.warning("redis.unavailable", error=str(exc))
        raise StoreUnavailableError("connect", str(exc)) from exc
    return BadgeStore(
        client,
        timeout=settings.STORE_TIMEOUT_SECONDS,
        lease_seconds=settings.PROCESSING_LEASE_SECONDS,
    )


async def get_badge_request(request: Request) -> BadgeRequest:
    return validate_badge_request(request.query_params)


async def get_intake_service(store: BadgeStore = Depends(get_badge_store)) -> BadgeIntakeService:
    return BadgeIntakeService(
        store,
        strategy=settings.ENQUEUE_STRATEGY,
        fail_open=settings.DEDUP_FAIL_OPEN,
    )


@router.get(
    "",
    response_model=BadgeResponse,
    response_model_exclude_none=True,
    responses={
        202: {"model": BadgeResponse},
        400: {"model": ErrorResponse},
        503: {"model": BadgeResponse},
    },
)
async def request_badges(
    badge_request: BadgeRequest = Depends(get_badge_request),
    intake: BadgeIntakeService = Depends(get_intake_service),
):
    """
    Queue badge computation for a remote unless it is already queued or running.

    Returns 202 when a new work item was queued, 200 when the remote is
    already queued or processing. The cache field carries the last computed
    result, if any, so callers can render something immediately. The request
    is validated before the store is touched, so bad input is always a 400.
    """
    try:
        result = await intake.submit(badge_request)
    except StoreUnavailableError as exc:
        logger.warning("badges.queue_failed", remote=badge_request.remote, error=str(exc))
        body = BadgeResponse(
            download=badge_request.download,
            remote=badge_request.remote,
            callback=badge_request.callback,
            cache=exc.cache,
            error=ErrorText.UNABLE_TO_QUEUE,
        )
        return JSONResponse(
            status_code=503,
            content=body.model_dump(mode="json", exclude_none=True),
        )

    return JSONResponse(
        status_code=result.http_status,
        content=result.to_response().model_dump(mode="json", exclude_none=True),
    )
