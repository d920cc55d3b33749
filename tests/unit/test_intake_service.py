"""Unit tests for BadgeIntakeService dedup and enqueue policy."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from badgeit_api.core.exceptions import StoreUnavailableError
from badgeit_api.models.schemas import BadgeRequest, BadgeStatus, DownloadType
from badgeit_api.services.intake import BadgeIntakeService

REQUEST = BadgeRequest(download=DownloadType.CURL, remote="acme/widgets", callback="http://cb")


@pytest.mark.asyncio
async def test_fail_open_treats_unreadable_sets_as_empty(fake_store) -> None:
    """A failed SISMEMBER does not block new requests when fail-open is on."""
    fake_store.membership_error = RedisConnectionError("connection reset")
    service = BadgeIntakeService(fake_store, strategy="transaction", fail_open=True)

    result = await service.submit(REQUEST)

    assert result.status is BadgeStatus.SUCCESSFULLY_QUEUED
    assert result.http_status == 202
    assert fake_store.queued == {"acme/widgets"}


@pytest.mark.asyncio
async def test_fail_closed_surfaces_store_unavailable(fake_store) -> None:
    fake_store.membership_error = RedisConnectionError("connection reset")
    service = BadgeIntakeService(fake_store, strategy="transaction", fail_open=False)

    with pytest.raises(StoreUnavailableError):
        await service.submit(REQUEST)

    assert fake_store.enqueue_calls == 0


@pytest.mark.asyncio
async def test_membership_timeout_is_never_read_as_absent(fake_store) -> None:
    fake_store.membership_error = StoreUnavailableError("is_processing", "timed out")
    service = BadgeIntakeService(fake_store, strategy="transaction", fail_open=True)

    with pytest.raises(StoreUnavailableError):
        await service.submit(REQUEST)

    assert fake_store.enqueue_calls == 0


@pytest.mark.asyncio
async def test_queued_remote_skips_enqueue_in_transaction_mode(fake_store) -> None:
    fake_store.queued.add("acme/widgets")
    service = BadgeIntakeService(fake_store, strategy="transaction")

    result = await service.submit(REQUEST)

    assert result.status is BadgeStatus.ALREADY_QUEUED
    assert result.http_status == 200
    assert fake_store.enqueue_calls == 0


@pytest.mark.asyncio
async def test_processing_wins_over_queued(fake_store, strategy) -> None:
    fake_store.processing.add("acme/widgets")
    fake_store.queued.add("acme/widgets")
    service = BadgeIntakeService(fake_store, strategy=strategy)

    result = await service.submit(REQUEST)

    assert result.status is BadgeStatus.ALREADY_PROCESSING
    assert fake_store.dispatch == []


@pytest.mark.asyncio
async def test_atomic_mode_does_not_read_sets_separately(fake_store) -> None:
    """The atomic script does its own membership check; no SISMEMBER round-trips."""
    fake_store.membership_error = AssertionError("membership read in atomic mode")
    service = BadgeIntakeService(fake_store, strategy="atomic")

    result = await service.submit(REQUEST)

    assert result.status is BadgeStatus.SUCCESSFULLY_QUEUED
    assert len(fake_store.dispatch) == 1


@pytest.mark.asyncio
async def test_response_reflects_current_cache(fake_store, strategy) -> None:
    fake_store.cache["acme/widgets"] = "cached badges"
    service = BadgeIntakeService(fake_store, strategy=strategy)

    response = (await service.submit(REQUEST)).to_response()

    assert response.cache == "cached badges"
    assert response.download is DownloadType.CURL
    assert response.error is None
