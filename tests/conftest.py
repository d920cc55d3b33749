"""Shared fixtures: an in-memory badge store and an app wired to it."""

from __future__ import annotations

import json

import pytest
from httpx import ASGITransport, AsyncClient

from badgeit_api.core.exceptions import StoreUnavailableError
from badgeit_api.models.schemas import WorkItem
from badgeit_api.services.store import EnqueueOutcome


class FakeBadgeStore:
    """Dict/set/list stand-in for BadgeStore with failure injection.

    ``dispatch`` is kept newest-first like the Redis list written with LPUSH.
    """

    def __init__(self):
        self.cache: dict[str, str] = {}
        self.processing: set[str] = set()
        self.queued: set[str] = set()
        self.dispatch: list[str] = []
        self.membership_error: Exception | None = None
        self.enqueue_error: Exception | None = None
        self.enqueue_calls = 0

    async def get_cached(self, remote: str) -> str:
        return self.cache.get(remote, "")

    async def is_processing(self, remote: str) -> bool:
        if self.membership_error:
            raise self.membership_error
        return remote in self.processing

    async def is_queued(self, remote: str) -> bool:
        if self.membership_error:
            raise self.membership_error
        return remote in self.queued

    async def enqueue(self, item: WorkItem) -> None:
        self.enqueue_calls += 1
        queued = self.queued | {item.remote}
        dispatch = [item.to_json(), *self.dispatch]
        if self.enqueue_error:
            raise StoreUnavailableError("enqueue", str(self.enqueue_error))
        self.queued, self.dispatch = queued, dispatch

    async def enqueue_if_absent(self, item: WorkItem) -> EnqueueOutcome:
        self.enqueue_calls += 1
        if self.enqueue_error:
            raise StoreUnavailableError("enqueue_if_absent", str(self.enqueue_error))
        if item.remote in self.processing:
            return EnqueueOutcome.ALREADY_PROCESSING
        if item.remote in self.queued:
            return EnqueueOutcome.ALREADY_QUEUED
        self.queued.add(item.remote)
        self.dispatch.insert(0, item.to_json())
        return EnqueueOutcome.QUEUED

    def claim(self) -> dict | None:
        """Simulate the worker's claim step."""
        if not self.dispatch:
            return None
        payload = json.loads(self.dispatch.pop())
        self.queued.discard(payload["remote"])
        self.processing.add(payload["remote"])
        return payload


@pytest.fixture
def fake_store() -> FakeBadgeStore:
    return FakeBadgeStore()


@pytest.fixture(params=["atomic", "transaction"])
def strategy(request) -> str:
    return request.param


@pytest.fixture
def app(fake_store, strategy):
    from badgeit_api.api.v1.badges import get_intake_service
    from badgeit_api.main import create_app
    from badgeit_api.services.intake import BadgeIntakeService

    application = create_app()
    application.dependency_overrides[get_intake_service] = lambda: BadgeIntakeService(
        fake_store, strategy=strategy, fail_open=True
    )
    return application


@pytest.fixture
def client_factory(app):
    def _factory() -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _factory
