import asyncio

import redis.asyncio as redis
import structlog

from badgeit_api.core.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None
_redis_lock = asyncio.Lock()


def _redacted(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url


async def get_redis() -> redis.Redis:
    """Return the shared Redis client, creating it on first call.

    Every API handler in the process shares this one pooled client. Double-checked
    locking keeps concurrent first requests from building separate pools.
    """
    global _redis_client

    if _redis_client is None:
        async with _redis_lock:
            if _redis_client is None:
                dsn = settings.redis_dsn
                logger.info("redis.connecting", url=_redacted(dsn))
                client = redis.from_url(
                    dsn,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
                    socket_timeout=settings.STORE_TIMEOUT_SECONDS,
                )
                await client.ping()
                _redis_client = client
                logger.info("redis.connected")
    return _redis_client


async def close_redis():
    """Close the Redis client on application shutdown."""
    global _redis_client
    if _redis_client:
        logger.info("redis.closing")
        await _redis_client.aclose()
        _redis_client = None
