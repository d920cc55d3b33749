from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    APP_VERSION: str = "experimental"

    # === Shared State Store ===
    REDIS_HOSTNAME: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_URL: str | None = None  # Overrides the hostname/port pair when set
    REDIS_MAX_CONNECTIONS: int = 50

    STORE_TIMEOUT_SECONDS: float = Field(
        default=2.0,
        description="Upper bound for every store round-trip; a timeout is a 503, never a cache miss.",
    )

    # === Dedup / Enqueue Policy ===
    DEDUP_FAIL_OPEN: bool = Field(
        default=True,
        description="Treat a failed membership read as 'not a member' instead of rejecting the request.",
    )
    ENQUEUE_STRATEGY: Literal["atomic", "transaction"] = Field(
        default="atomic",
        description="atomic: one Lua script checks both sets and enqueues. "
        "transaction: SISMEMBER reads followed by a MULTI/EXEC enqueue.",
    )
    PROCESSING_LEASE_SECONDS: int = Field(
        default=900,
        description="How long a worker claim is honoured before the reaper frees the remote.",
    )

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("REDIS_MAX_CONNECTIONS")
    @classmethod
    def validate_max_connections(cls, v: int) -> int:
        if not 1 <= v <= 1000:
            raise ValueError("REDIS_MAX_CONNECTIONS must be between 1 and 1000")
        return v

    @field_validator("STORE_TIMEOUT_SECONDS")
    @classmethod
    def validate_store_timeout(cls, v: float) -> float:
        """Validate the store operation timeout (seconds)."""
        if v < 0.05:
            raise ValueError("STORE_TIMEOUT_SECONDS must be >= 0.05 seconds")
        if v > 60.0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be <= 60 seconds")
        return v

    @field_validator("PROCESSING_LEASE_SECONDS")
    @classmethod
    def validate_lease(cls, v: int) -> int:
        """Validate the worker claim lease (seconds)."""
        if v < 30:
            raise ValueError("PROCESSING_LEASE_SECONDS must be >= 30 seconds")
        if v > 86400:
            raise ValueError("PROCESSING_LEASE_SECONDS must be <= 86400 seconds (24 hours max)")
        return v

    @property
    def redis_dsn(self) -> str:
        if self.REDIS_URL:
            return self.REDIS_URL
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOSTNAME}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
