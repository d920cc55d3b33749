class RedisKeys:
    # Shared with the badge worker; do not rename without migrating it too.
    BADGE_CACHE = "badge:{remote}"
    PROCESSING_REMOTES = "badgeit:processingRemotes"
    QUEUED_REMOTES = "badgeit:queuedRemotes"
    WORKER_QUEUE = "badge:worker"

    # Claim lease written by the worker claim primitive, read by the reaper.
    PROCESSING_LEASE = "badgeit:lease:{remote}"


class StatusText:
    ALREADY_PROCESSING = "already processing"
    ALREADY_QUEUED = "already queued for processing"
    SUCCESSFULLY_QUEUED = "successfully queued for processing"


class ErrorText:
    UNABLE_TO_QUEUE = "Unable to queue request"
    STORE_UNAVAILABLE = "Badge store unavailable"


class DownloadTypes:
    GIT = "git"
    CURL = "curl"
    ALLOWED: tuple[str, ...] = (GIT, CURL)
