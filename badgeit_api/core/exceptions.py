"""Error taxonomy for badge intake.

Only two kinds ever reach the caller: a bad request (400) and an
unavailable store (503). Failed membership reads are absorbed by the dedup
check when fail-open is enabled and never surface here.
"""


class BadgeIntakeError(Exception):
    """Base class for errors scoped to a single badge request."""


class BadgeValidationError(BadgeIntakeError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class StoreUnavailableError(BadgeIntakeError):
    """The shared store timed out, refused a connection, or aborted a transaction."""

    def __init__(self, operation: str, message: str = "store unavailable"):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        # Cached badge result read before the failure, echoed in the 503 body.
        self.cache = ""
