"""Cooperative cancellation for running sync jobs."""

from typing import Optional

from finsync.domain.sync.exceptions import JobCancelledError


class CancellationToken:
    """Flag checked by the pipeline between stages.

    Cancellation never interrupts a write: the orchestrator only checks the
    token before fetching, after fetching and after normalization.
    A connection job shares its token with the account jobs it spawned.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "Sync job was cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise JobCancelledError(self._reason or "Sync job was cancelled")
