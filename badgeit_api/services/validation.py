"""Request validation for GET /badges query parameters."""

from collections.abc import Mapping

from badgeit_api.core.constants import DownloadTypes
from badgeit_api.core.exceptions import BadgeValidationError
from badgeit_api.models.schemas import BadgeRequest, DownloadType


def _required(params: Mapping[str, str], field: str) -> str:
    value = params.get(field)
    if not value:
        raise BadgeValidationError(field, f"{field} is required")
    return value


def validate_badge_request(params: Mapping[str, str]) -> BadgeRequest:
    """Build a BadgeRequest from raw query parameters.

    Checks run in a fixed order (download, its allowed values, remote,
    callback) and the first failure wins.
    """
    download = _required(params, "download")
    if download not in DownloadTypes.ALLOWED:
        raise BadgeValidationError(
            "download",
            f"Allowed download types are {', '.join(DownloadTypes.ALLOWED)}",
        )
    remote = _required(params, "remote")
    callback = _required(params, "callback")

    return BadgeRequest(download=DownloadType(download), remote=remote, callback=callback)
