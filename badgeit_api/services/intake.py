"""Badge intake: cache lookup, dedup check and enqueue for one BadgeRequest.

Two enqueue strategies are supported (Settings.ENQUEUE_STRATEGY):

- ``atomic``: a single Lua script checks the processing and queued sets and,
  only if the remote is in neither, marks it queued and pushes the work item.
  Concurrent identical requests cannot both enqueue.
- ``transaction``: SISMEMBER reads followed by a MULTI/EXEC enqueue. The
  check and the enqueue are separate round-trips, so two requests racing on
  the same remote can both pass the check and both enqueue.

Membership reads that fail with a Redis error are logged and, when
DEDUP_FAIL_OPEN is on, treated as "not a member". Timeouts are never treated
that way; they surface as StoreUnavailableError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import structlog
from redis.exceptions import RedisError

from badgeit_api.core.exceptions import StoreUnavailableError
from badgeit_api.models.schemas import BadgeRequest, BadgeResponse, BadgeStatus, WorkItem
from badgeit_api.services.store import BadgeStore, EnqueueOutcome

logger = structlog.get_logger(__name__)

EnqueueStrategy = Literal["atomic", "transaction"]

_OUTCOME_STATUS = {
    EnqueueOutcome.QUEUED: BadgeStatus.SUCCESSFULLY_QUEUED,
    EnqueueOutcome.ALREADY_PROCESSING: BadgeStatus.ALREADY_PROCESSING,
    EnqueueOutcome.ALREADY_QUEUED: BadgeStatus.ALREADY_QUEUED,
}


@dataclass(frozen=True)
class IntakeResult:
    request: BadgeRequest
    cache: str
    status: BadgeStatus

    @property
    def http_status(self) -> int:
        return self.status.http_status

    def to_response(self) -> BadgeResponse:
        return BadgeResponse(
            download=self.request.download,
            remote=self.request.remote,
            callback=self.request.callback,
            cache=self.cache,
            status=self.status,
        )


class BadgeIntakeService:
    def __init__(
        self,
        store: BadgeStore,
        *,
        strategy: EnqueueStrategy = "atomic",
        fail_open: bool = True,
    ):
        self._store = store
        self._strategy = strategy
        self._fail_open = fail_open

    async def submit(self, request: BadgeRequest) -> IntakeResult:
        """Dedup and enqueue one badge request.

        Raises StoreUnavailableError when the store times out, refuses the cache
        read, or rejects the enqueue. Nothing is retried here.
        """
        log = logger.bind(remote=request.remote, download=request.download.value)

        cache = await self._store.get_cached(request.remote)
        item = WorkItem.from_request(request, cache)

        try:
            if self._strategy == "atomic":
                status = _OUTCOME_STATUS[await self._store.enqueue_if_absent(item)]
            else:
                status = await self._check_then_enqueue(item, log)
        except StoreUnavailableError as exc:
            exc.cache = cache
            raise

        log.info("badges.intake", status=status.value, cached=bool(cache), strategy=self._strategy)
        return IntakeResult(request=request, cache=cache, status=status)

    async def _check_then_enqueue(self, item: WorkItem, log) -> BadgeStatus:
        if await self._is_member(self._store.is_processing, item.remote, "processing", log):
            return BadgeStatus.ALREADY_PROCESSING
        if await self._is_member(self._store.is_queued, item.remote, "queued", log):
            return BadgeStatus.ALREADY_QUEUED

        await self._store.enqueue(item)
        return BadgeStatus.SUCCESSFULLY_QUEUED

    async def _is_member(self, check, remote: str, set_name: str, log) -> bool:
        try:
            return await check(remote)
        except RedisError as exc:
            if not self._fail_open:
                log.warning("dedup.check_failed_closed", set=set_name, error=str(exc))
                raise StoreUnavailableError(f"is_{set_name}", str(exc)) from exc
            log.warning("dedup.check_failed", set=set_name, error=str(exc), treated_as="absent")
            return False
