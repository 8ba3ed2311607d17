"""Sync job entity: one unit of ingestion work and its retry history."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from finsync.domain.shared.time import utc_now
from finsync.domain.sync.exceptions import InvalidJobTransitionError
from finsync.domain.sync.value_objects import ErrorKind, SyncJobState, SyncScope

_ALLOWED_TRANSITIONS: dict[SyncJobState, frozenset[SyncJobState]] = {
    SyncJobState.QUEUED: frozenset(
        {SyncJobState.RUNNING, SyncJobState.FAILED_TERMINAL},
    ),
    SyncJobState.RUNNING: frozenset(
        {
            SyncJobState.SUCCEEDED,
            SyncJobState.FAILED_RETRYABLE,
            SyncJobState.FAILED_TERMINAL,
        },
    ),
    SyncJobState.FAILED_RETRYABLE: frozenset(
        {SyncJobState.QUEUED, SyncJobState.FAILED_TERMINAL},
    ),
    SyncJobState.SUCCEEDED: frozenset(),
    SyncJobState.FAILED_TERMINAL: frozenset(),
}


class SyncJob:
    """
    A connection-level or account-level sync job.

    State machine::

        queued -> running -> succeeded
                          -> failed_retryable -> queued (after backoff)
                          -> failed_terminal

    A queued or backing-off job may also be cancelled straight into
    ``failed_terminal``. Terminal states are final.
    """

    def __init__(  # noqa: PLR0913
        self,
        tenant_id: UUID,
        connection_id: UUID,
        scope: SyncScope = SyncScope.CONNECTION,
        account_id: Optional[UUID] = None,
        parent_id: Optional[UUID] = None,
        full_history: bool = False,
        state: SyncJobState = SyncJobState.QUEUED,
        attempts: int = 0,
        last_error_kind: Optional[ErrorKind] = None,
        last_error: Optional[str] = None,
        next_run_at: Optional[datetime] = None,
        transactions_upserted: int = 0,
        transactions_new: int = 0,
        accounts_succeeded: int = 0,
        accounts_failed: int = 0,
        # For reconstitution from persistence:
        id: Optional[UUID] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        if scope == SyncScope.ACCOUNT and account_id is None:
            msg = "Account-level sync job requires an account_id"
            raise ValueError(msg)
        if attempts < 0:
            msg = "attempts cannot be negative"
            raise ValueError(msg)

        self._id = id or uuid4()
        self._tenant_id = tenant_id
        self._connection_id = connection_id
        self._scope = scope
        self._account_id = account_id
        self._parent_id = parent_id
        self._full_history = full_history
        self._state = state
        self._attempts = attempts
        self._last_error_kind = last_error_kind
        self._last_error = last_error
        self._next_run_at = next_run_at
        self._transactions_upserted = transactions_upserted
        self._transactions_new = transactions_new
        self._accounts_succeeded = accounts_succeeded
        self._accounts_failed = accounts_failed
        self._created_at = created_at or utc_now()
        self._updated_at = updated_at or self._created_at
        self._finished_at = finished_at

    @classmethod
    def for_connection(
        cls,
        tenant_id: UUID,
        connection_id: UUID,
        full_history: bool = False,
    ) -> SyncJob:
        return cls(
            tenant_id=tenant_id,
            connection_id=connection_id,
            scope=SyncScope.CONNECTION,
            full_history=full_history,
        )

    def spawn_account_job(self, account_id: UUID) -> SyncJob:
        if self._scope != SyncScope.CONNECTION:
            msg = "Only connection-level jobs fan out into account jobs"
            raise ValueError(msg)
        return SyncJob(
            tenant_id=self._tenant_id,
            connection_id=self._connection_id,
            scope=SyncScope.ACCOUNT,
            account_id=account_id,
            parent_id=self._id,
            full_history=self._full_history,
        )

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def tenant_id(self) -> UUID:
        return self._tenant_id

    @property
    def connection_id(self) -> UUID:
        return self._connection_id

    @property
    def scope(self) -> SyncScope:
        return self._scope

    @property
    def account_id(self) -> Optional[UUID]:
        return self._account_id

    @property
    def parent_id(self) -> Optional[UUID]:
        return self._parent_id

    @property
    def full_history(self) -> bool:
        return self._full_history

    @property
    def state(self) -> SyncJobState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def last_error_kind(self) -> Optional[ErrorKind]:
        return self._last_error_kind

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def next_run_at(self) -> Optional[datetime]:
        return self._next_run_at

    @property
    def transactions_upserted(self) -> int:
        return self._transactions_upserted

    @property
    def transactions_new(self) -> int:
        return self._transactions_new

    @property
    def accounts_succeeded(self) -> int:
        return self._accounts_succeeded

    @property
    def accounts_failed(self) -> int:
        return self._accounts_failed

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def finished_at(self) -> Optional[datetime]:
        return self._finished_at

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    def start(self, now: Optional[datetime] = None) -> None:
        self._transition(SyncJobState.RUNNING, now)
        self._attempts += 1
        self._next_run_at = None

    def succeed(
        self,
        transactions_upserted: int = 0,
        transactions_new: int = 0,
        now: Optional[datetime] = None,
    ) -> None:
        self._transition(SyncJobState.SUCCEEDED, now)
        self._transactions_upserted = transactions_upserted
        self._transactions_new = transactions_new
        self._finished_at = self._updated_at

    def fail_retryable(
        self,
        kind: ErrorKind,
        message: str,
        next_run_at: datetime,
        now: Optional[datetime] = None,
    ) -> None:
        if not kind.is_retryable:
            msg = f"Error kind '{kind.value}' is not retryable"
            raise ValueError(msg)
        self._transition(SyncJobState.FAILED_RETRYABLE, now)
        self._last_error_kind = kind
        self._last_error = message
        self._next_run_at = next_run_at

    def requeue(self, now: Optional[datetime] = None) -> None:
        self._transition(SyncJobState.QUEUED, now)

    def fail_terminal(
        self,
        kind: ErrorKind,
        message: str,
        now: Optional[datetime] = None,
    ) -> None:
        self._transition(SyncJobState.FAILED_TERMINAL, now)
        self._last_error_kind = kind
        self._last_error = message
        self._next_run_at = None
        self._finished_at = self._updated_at

    def record_fan_out(self, succeeded: int, failed: int) -> None:
        self._accounts_succeeded = succeeded
        self._accounts_failed = failed

    def _transition(self, target: SyncJobState, now: Optional[datetime]) -> None:
        if target not in _ALLOWED_TRANSITIONS[self._state]:
            raise InvalidJobTransitionError(
                self._id,
                self._state.value,
                target.value,
            )
        self._state = target
        self._updated_at = now or utc_now()

    def __eq__(self, other) -> bool:
        if not isinstance(other, SyncJob):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"SyncJob(id={self._id}, scope={self._scope.value}, "
            f"state={self._state.value}, attempts={self._attempts})"
        )
