"""Value objects for sync jobs."""

from enum import Enum


class SyncJobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_TERMINAL = "failed_terminal"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncJobState.SUCCEEDED, SyncJobState.FAILED_TERMINAL)


class SyncScope(str, Enum):
    """Granularity of a sync job.

    A connection job refreshes the account list and fans out into one
    account job per enabled account.
    """

    CONNECTION = "connection"
    ACCOUNT = "account"


class ErrorKind(str, Enum):
    """Closed classification of everything that can go wrong in a job."""

    DISCONNECTED = "disconnected"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"
    CONFIGURATION = "configuration"
    CANCELLED = "cancelled"

    @property
    def is_retryable(self) -> bool:
        return self in (
            ErrorKind.RATE_LIMITED,
            ErrorKind.TRANSIENT,
            ErrorKind.UNKNOWN,
        )
