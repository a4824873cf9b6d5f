"""Error taxonomy shared by the ingestion adapters, re-evaluator, dispatcher and reports.

Single-entity operations let these propagate to the caller; batch operations
catch them per item, count and log them, and continue with the remainder.
"""


class StackwatchError(Exception):
    """Base for all pipeline errors; carries a human-readable message and optional cause."""

    code = "STACKWATCH_ERROR"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {type(self.cause).__name__}: {self.cause})"
        return self.message


class ValidationError(StackwatchError):
    """Missing or malformed input. Caller's fault; never retried."""

    code = "VALIDATION_ERROR"


class NotFoundError(StackwatchError):
    """A referenced entity does not exist. Never retried."""

    code = "NOT_FOUND"


class ConflictError(StackwatchError):
    """A concurrent writer won the race (status CAS or unique name). Retried by the re-evaluator up to a bound."""

    code = "CONFLICT"


class UpstreamUnavailable(StackwatchError):
    """Version or vulnerability source failed. Batch checks degrade to 'no update detected'."""

    code = "UPSTREAM_UNAVAILABLE"


class StoreError(StackwatchError):
    """Transient store I/O failure. Retried with backoff at the adapter boundary."""

    code = "STORE_ERROR"


class DeliveryError(StackwatchError):
    """A notification channel rejected or failed a delivery. Logged, never rolls back creation."""

    code = "DELIVERY_ERROR"
