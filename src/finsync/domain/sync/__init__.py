"""Sync job domain: state machine, retry policy, cancellation."""

from finsync.domain.sync.cancellation import CancellationToken
from finsync.domain.sync.entities import SyncJob
from finsync.domain.sync.exceptions import (
    ConnectionNotActiveError,
    InvalidJobTransitionError,
    JobCancelledError,
    SyncJobNotFoundError,
)
from finsync.domain.sync.repositories import SyncJobRepository
from finsync.domain.sync.retry_policy import RetryPolicy, classify_error
from finsync.domain.sync.value_objects import ErrorKind, SyncJobState, SyncScope

__all__ = [
    "CancellationToken",
    "ConnectionNotActiveError",
    "ErrorKind",
    "InvalidJobTransitionError",
    "JobCancelledError",
    "RetryPolicy",
    "SyncJob",
    "SyncJobNotFoundError",
    "SyncJobRepository",
    "SyncJobState",
    "SyncScope",
    "classify_error",
]
