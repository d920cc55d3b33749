"""Pydantic schemas for badge intake.

Centralised here so the route, the intake service and the store agree on
one wire shape. The WorkItem JSON is read by the badge worker, so its keys
are part of the worker contract.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from badgeit_api.core.constants import DownloadTypes, StatusText


class DownloadType(str, Enum):
    GIT = DownloadTypes.GIT
    CURL = DownloadTypes.CURL


class BadgeStatus(str, Enum):
    ALREADY_PROCESSING = StatusText.ALREADY_PROCESSING
    ALREADY_QUEUED = StatusText.ALREADY_QUEUED
    SUCCESSFULLY_QUEUED = StatusText.SUCCESSFULLY_QUEUED

    @property
    def http_status(self) -> int:
        return 202 if self is BadgeStatus.SUCCESSFULLY_QUEUED else 200


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class BadgeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    download: DownloadType
    remote: str = Field(..., min_length=1)
    callback: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Worker payload
# ---------------------------------------------------------------------------


class WorkItem(BaseModel):
    download: DownloadType
    remote: str
    callback: str
    cache: str = ""
    status: BadgeStatus = BadgeStatus.SUCCESSFULLY_QUEUED

    @classmethod
    def from_request(cls, request: BadgeRequest, cache: str) -> "WorkItem":
        return cls(
            download=request.download,
            remote=request.remote,
            callback=request.callback,
            cache=cache,
        )

    def to_json(self) -> str:
        return self.model_dump_json()


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class BadgeResponse(BaseModel):
    download: DownloadType
    remote: str
    callback: str
    cache: str = ""
    status: BadgeStatus | None = None
    error: str | None = None


class ErrorResponse(BaseModel):
    error: str


class AppInfoResponse(BaseModel):
    app: str = "badgeit-api"
    version: str
