"""Redis-backed Shared State Store client for badge intake and the badge worker.

The API and the worker pool are co-equal clients of the same keyspace
(see RedisKeys). Every mutation goes through one of the primitives below,
each a single MULTI/EXEC or a single Lua script, so no caller ever performs
an unguarded read-then-write against the shared sets or the dispatch list.

The dispatch list is written with LPUSH and drained with RPOP, which keeps
it FIFO with the left end as the logical tail.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable
from enum import IntEnum
from typing import TypeVar

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from badgeit_api.core.constants import RedisKeys
from badgeit_api.core.exceptions import StoreUnavailableError
from badgeit_api.models.schemas import WorkItem

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_LEASE_PREFIX = RedisKeys.PROCESSING_LEASE.format(remote="")

# KEYS: processing set, queued set, dispatch list. ARGV: remote, work item JSON.
# Every check happens before the first write so a rejected call leaves no trace.
_ENQUEUE_IF_ABSENT_LUA = """
if redis.call('SISMEMBER', KEYS[1], ARGV[1]) == 1 then
  return 1
end
if redis.call('SISMEMBER', KEYS[2], ARGV[1]) == 1 then
  return 2
end
local list_type = redis.call('TYPE', KEYS[3])['ok']
if list_type ~= 'none' and list_type ~= 'list' then
  return redis.error_reply('WRONGTYPE dispatch queue is not a list')
end
redis.call('SADD', KEYS[2], ARGV[1])
redis.call('LPUSH', KEYS[3], ARGV[2])
return 0
"""

# KEYS: dispatch list, queued set, processing set. ARGV: lease key prefix, lease seconds.
# The lease key is derived from the popped payload, so this script assumes a
# single Redis node rather than a cluster.
_CLAIM_LUA = """
local payload = redis.call('RPOP', KEYS[1])
if not payload then
  return false
end
local remote = cjson.decode(payload)['remote']
redis.call('SREM', KEYS[2], remote)
redis.call('SADD', KEYS[3], remote)
redis.call('SET', ARGV[1] .. remote, '1', 'EX', tonumber(ARGV[2]))
return payload
"""

# KEYS: cache key, processing set, lease key. ARGV: remote, cache value.
_FINISH_LUA = """
redis.call('SET', KEYS[1], ARGV[2])
redis.call('SREM', KEYS[2], ARGV[1])
redis.call('DEL', KEYS[3])
return 1
"""

# KEYS: processing set. ARGV: lease key prefix.
_REAP_LUA = """
local reaped = {}
for _, remote in ipairs(redis.call('SMEMBERS', KEYS[1])) do
  if redis.call('EXISTS', ARGV[1] .. remote) == 0 then
    redis.call('SREM', KEYS[1], remote)
    table.insert(reaped, remote)
  end
end
return reaped
"""


def _log_late_outcome(operation: str, task: asyncio.Future) -> None:
    """Report a shielded store call that finished after its caller gave up."""
    if task.cancelled():
        logger.warning("store.late_cancelled", operation=operation)
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("store.late_failure", operation=operation, error=str(exc))
    else:
        logger.info("store.late_commit", operation=operation)


class EnqueueOutcome(IntEnum):
    """Return codes of the enqueue-if-absent script."""

    QUEUED = 0
    ALREADY_PROCESSING = 1
    ALREADY_QUEUED = 2


class BadgeStore:
    """Thin, explicitly passed wrapper around a pooled ``redis.asyncio`` client."""

    def __init__(self, client: redis.Redis, *, timeout: float, lease_seconds: int = 900):
        self._redis = client
        self._timeout = timeout
        self._lease_seconds = lease_seconds
        self._enqueue_if_absent = client.register_script(_ENQUEUE_IF_ABSENT_LUA)
        self._claim = client.register_script(_CLAIM_LUA)
        self._finish = client.register_script(_FINISH_LUA)
        self._reap = client.register_script(_REAP_LUA)

    async def _bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a store call under the configured timeout.

        A timeout always becomes StoreUnavailableError; it must never be read as
        "key absent". Other Redis errors propagate so callers can apply their own
        policy.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (asyncio.TimeoutError, RedisTimeoutError) as exc:
            logger.warning("store.timeout", operation=operation, timeout=self._timeout)
            raise StoreUnavailableError(operation, "timed out") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_cached(self, remote: str) -> str:
        """Return the cached badge result for ``remote``, or "" when there is none."""
        key = RedisKeys.BADGE_CACHE.format(remote=remote)
        try:
            value = await self._bounded("get_cached", self._redis.get(key))
        except RedisConnectionError as exc:
            raise StoreUnavailableError("get_cached", str(exc)) from exc
        except RedisError as exc:
            # e.g. WRONGTYPE: an unreadable entry is the same as no entry
            logger.warning("cache.lookup_failed", remote=remote, error=str(exc))
            return ""
        return value or ""

    async def is_processing(self, remote: str) -> bool:
        return bool(
            await self._bounded(
                "is_processing", self._redis.sismember(RedisKeys.PROCESSING_REMOTES, remote)
            )
        )

    async def is_queued(self, remote: str) -> bool:
        return bool(
            await self._bounded(
                "is_queued", self._redis.sismember(RedisKeys.QUEUED_REMOTES, remote)
            )
        )

    async def ping(self) -> bool:
        return bool(await self._bounded("ping", self._redis.ping()))

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def enqueue(self, item: WorkItem) -> None:
        """Mark the remote queued and push its work item in one MULTI/EXEC.

        Does not look at the sets first; pair it with is_processing/is_queued
        when the check-then-act strategy is configured.
        """

        async def _execute() -> None:
            pipe = self._redis.pipeline(transaction=True)
            pipe.sadd(RedisKeys.QUEUED_REMOTES, item.remote)
            pipe.lpush(RedisKeys.WORKER_QUEUE, item.to_json())
            await pipe.execute()

        await self._run_shielded("enqueue", _execute())

    async def enqueue_if_absent(self, item: WorkItem) -> EnqueueOutcome:
        """Check both sets and enqueue in one server-side script.

        Two concurrent calls for the same remote can never both return QUEUED.
        """
        raw = await self._run_shielded(
            "enqueue_if_absent",
            self._enqueue_if_absent(
                keys=[
                    RedisKeys.PROCESSING_REMOTES,
                    RedisKeys.QUEUED_REMOTES,
                    RedisKeys.WORKER_QUEUE,
                ],
                args=[item.remote, item.to_json()],
            ),
        )
        return EnqueueOutcome(int(raw))

    async def _run_shielded(self, operation: str, coro: Awaitable[T]) -> T:
        # shield: a dropped client connection must not abort a transaction mid-flight
        task = asyncio.ensure_future(coro)
        try:
            return await self._bounded(operation, asyncio.shield(task))
        except RedisError as exc:
            logger.warning("store.transaction_failed", operation=operation, error=str(exc))
            raise StoreUnavailableError(operation, str(exc)) from exc
        finally:
            if not task.done():
                task.add_done_callback(functools.partial(_log_late_outcome, operation))

    # ------------------------------------------------------------------
    # Worker-side primitives
    # ------------------------------------------------------------------

    async def claim_next(self) -> WorkItem | None:
        """Pop the oldest work item and move its remote from queued to processing.

        Also starts the claim lease that reap_expired_claims() checks.
        """
        raw = await self._run_shielded(
            "claim_next",
            self._claim(
                keys=[
                    RedisKeys.WORKER_QUEUE,
                    RedisKeys.QUEUED_REMOTES,
                    RedisKeys.PROCESSING_REMOTES,
                ],
                args=[_LEASE_PREFIX, self._lease_seconds],
            ),
        )
        if not raw:
            return None
        return WorkItem.model_validate_json(raw)

    async def finish(self, remote: str, cache_value: str) -> None:
        """Store the computed badges and release the remote's processing claim."""
        await self._run_shielded(
            "finish",
            self._finish(
                keys=[
                    RedisKeys.BADGE_CACHE.format(remote=remote),
                    RedisKeys.PROCESSING_REMOTES,
                    RedisKeys.PROCESSING_LEASE.format(remote=remote),
                ],
                args=[remote, cache_value],
            ),
        )

    async def reap_expired_claims(self) -> list[str]:
        """Drop processing remotes whose claim lease has expired."""
        reaped = await self._run_shielded(
            "reap_expired_claims",
            self._reap(keys=[RedisKeys.PROCESSING_REMOTES], args=[_LEASE_PREFIX]),
        )
        return list(reaped or [])
