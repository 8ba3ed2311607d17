"""Retry policy and error classification for sync jobs."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Optional

from finsync.domain.banking.exceptions import (
    ProviderDisconnectedError,
    ProviderRateLimitedError,
    ProviderTransientError,
)
from finsync.domain.shared.exceptions import ConfigurationError, EntityNotFoundError
from finsync.domain.sync.exceptions import ConnectionNotActiveError, JobCancelledError
from finsync.domain.sync.value_objects import ErrorKind


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception raised inside a job to an ErrorKind.

    Anything not recognised is UNKNOWN: retried, then terminal.
    """
    if isinstance(exc, JobCancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exc, (ProviderDisconnectedError, ConnectionNotActiveError)):
        return ErrorKind.DISCONNECTED
    if isinstance(exc, ProviderRateLimitedError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (ProviderTransientError, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, (ConfigurationError, EntityNotFoundError)):
        return ErrorKind.CONFIGURATION
    return ErrorKind.UNKNOWN


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff with full jitter.

    Attributes
    ----------
    max_attempts
        Total attempts including the first one
    base_delay
        Delay ceiling for the first retry, in seconds
    max_delay
        Upper bound for any delay, including provider-suggested ones
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    rng: random.Random = field(
        default_factory=random.Random,
        compare=False,
        repr=False,
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)
        if self.base_delay < 0 or self.max_delay < 0:
            msg = "Retry delays cannot be negative"
            raise ValueError(msg)

    def should_retry(self, kind: ErrorKind, attempts: int) -> bool:
        return kind.is_retryable and attempts < self.max_attempts

    def delay_for(
        self,
        attempts: int,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        retry_after: Optional[float] = None,
    ) -> float:
        """Seconds to wait before the next attempt.

        ``attempts`` is the number of attempts already made (>= 1).
        """
        if kind == ErrorKind.RATE_LIMITED and retry_after is not None:
            return min(self.max_delay, max(0.0, retry_after))
        ceiling = min(self.max_delay, self.base_delay * (2 ** max(0, attempts - 1)))
        return self.rng.uniform(0.0, ceiling)
