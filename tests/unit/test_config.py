"""Unit tests for Settings validation and DSN derivation."""

import pytest
from pydantic import ValidationError

from badgeit_api.core.config import Settings


def test_dsn_built_from_hostname_and_port() -> None:
    s = Settings(
        REDIS_HOSTNAME="cache.internal", REDIS_PORT=6380, REDIS_PASSWORD=None, REDIS_URL=None
    )

    assert s.redis_dsn == "redis://cache.internal:6380/0"


def test_explicit_url_overrides_hostname() -> None:
    s = Settings(REDIS_URL="redis://:secret@elsewhere:6379/2")

    assert s.redis_dsn == "redis://:secret@elsewhere:6379/2"


def test_password_is_included_in_dsn() -> None:
    s = Settings(REDIS_HOSTNAME="h", REDIS_PORT=1, REDIS_PASSWORD="pw", REDIS_URL=None)

    assert s.redis_dsn == "redis://:pw@h:1/0"


@pytest.mark.parametrize(
    "overrides",
    [
        {"STORE_TIMEOUT_SECONDS": 0.0},
        {"PROCESSING_LEASE_SECONDS": 5},
        {"REDIS_MAX_CONNECTIONS": 0},
        {"ENQUEUE_STRATEGY": "optimistic"},
    ],
)
def test_invalid_settings_are_rejected(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(**overrides)
