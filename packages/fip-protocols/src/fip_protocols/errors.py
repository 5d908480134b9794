"""
Error taxonomy for the floating IP controller.

Each exception class maps to one recovery policy in the reconciler:

- ClusterReadError: skip this cycle, retry on the next tick.
- ApiError (RateLimited, Transient): retry with backoff within a budget.
- ApiError (Unauthorized, NotFound, Unknown): abandon the cycle.
- LeaseError: treated as "not leader" by the coordinator.
- ConfigurationError: fatal, raised only at startup.

Per project patterns, context data is stored in attributes and the
message carries the relevant details.
"""

from enum import Enum


class FipControllerError(Exception):
    """Base class for all controller errors."""


class ConfigurationError(FipControllerError):
    """Raised when the controller cannot start with the given settings."""


class ClusterReadError(FipControllerError):
    """
    Raised when a cluster snapshot cannot be read.

    Never fatal. The reconciler records the cycle as skipped and
    re-observes on the next tick.
    """


class LeaseError(FipControllerError):
    """Raised by a lease store when the coordination backend fails."""


class ApiErrorKind(str, Enum):
    """Failure classes of the cloud IP API."""

    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """True for failures that may succeed when retried later."""
        return self in (ApiErrorKind.RATE_LIMITED, ApiErrorKind.TRANSIENT)

    @classmethod
    def from_status(cls, status_code: int) -> "ApiErrorKind":
        """Map an HTTP status code onto the taxonomy."""
        if status_code == 429:
            return cls.RATE_LIMITED
        if status_code in (401, 403):
            return cls.UNAUTHORIZED
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code >= 500:
            return cls.TRANSIENT
        return cls.UNKNOWN


class ApiError(FipControllerError):
    """
    Raised by a CloudIPClient when a remote call fails.

    Attributes:
        kind: Failure class driving the retry policy
        status_code: HTTP status, if the failure came from a response
        retry_after: Seconds the provider asked us to wait (429 only)
    """

    def __init__(
        self,
        kind: ApiErrorKind,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(f"{kind.value}: {message}")

    @property
    def retryable(self) -> bool:
        """True for RateLimited and Transient failures."""
        return self.kind.retryable
