"""Sync result DTOs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from finsync.domain.sync import SyncJob, SyncJobState


@dataclass(frozen=True)
class ConnectionSyncCompleted:
    """Published once a connection-level job reaches a terminal state."""

    tenant_id: UUID
    connection_id: UUID
    job_id: UUID
    state: SyncJobState
    transactions_new: int
    transactions_upserted: int
    accounts_succeeded: int
    accounts_failed: int
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == SyncJobState.SUCCEEDED

    @classmethod
    def from_job(cls, job: SyncJob) -> ConnectionSyncCompleted:
        return cls(
            tenant_id=job.tenant_id,
            connection_id=job.connection_id,
            job_id=job.id,
            state=job.state,
            transactions_new=job.transactions_new,
            transactions_upserted=job.transactions_upserted,
            accounts_succeeded=job.accounts_succeeded,
            accounts_failed=job.accounts_failed,
            finished_at=job.finished_at,
            error=job.last_error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": "connection_sync_completed",
            "tenant_id": str(self.tenant_id),
            "connection_id": str(self.connection_id),
            "job_id": str(self.job_id),
            "state": self.state.value,
            "transactions_new": self.transactions_new,
            "transactions_upserted": self.transactions_upserted,
            "accounts_succeeded": self.accounts_succeeded,
            "accounts_failed": self.accounts_failed,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class WebhookOutcome:
    """What the trigger service did with a verified callback."""

    action: str
    connection_id: Optional[UUID] = None
    job_id: Optional[UUID] = None
