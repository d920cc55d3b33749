"""Claim-lease recovery for remotes stuck in the processing set."""

import structlog

from badgeit_api.core.config import settings
from badgeit_api.core.redis import get_redis
from badgeit_api.services.store import BadgeStore

logger = structlog.get_logger(__name__)


async def reap_stale_claims(ctx: dict) -> dict:
    """
    Free remotes whose worker claim lease has expired.

    A worker that crashes between claim_next() and finish() leaves its remote
    in badgeit:processingRemotes, which makes every later request answer
    "already processing". Once the lease key is gone the remote is removed
    so the next request queues it again. Runs every minute via arq cron.
    """
    store = BadgeStore(
        await get_redis(),
        timeout=settings.STORE_TIMEOUT_SECONDS,
        lease_seconds=settings.PROCESSING_LEASE_SECONDS,
    )
    reaped = await store.reap_expired_claims()

    if reaped:
        logger.warning("reaper.claims_expired", count=len(reaped), remotes=reaped[:20])
    else:
        logger.debug("reaper.nothing_to_reap")

    return {"reaped": reaped}
