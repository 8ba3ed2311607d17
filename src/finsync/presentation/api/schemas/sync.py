"""Sync schemas for API request/response models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from finsync.domain.sync import ErrorKind, SyncJob, SyncJobState, SyncScope


class SyncRequest(BaseModel):
    full_history: bool = Field(
        default=False,
        description="Fetch the multi-year history instead of the latest window",
    )


class SyncAcceptedResponse(BaseModel):
    job_id: UUID
    connection_id: UUID
    state: SyncJobState
    full_history: bool


class SyncJobResponse(BaseModel):
    id: UUID
    connection_id: UUID
    account_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    scope: SyncScope
    state: SyncJobState
    full_history: bool
    attempts: int
    last_error_kind: Optional[ErrorKind] = None
    last_error: Optional[str] = None
    next_run_at: Optional[datetime] = None
    transactions_upserted: int
    transactions_new: int
    accounts_succeeded: int
    accounts_failed: int
    created_at: datetime
    updated_at: datetime
    finished_at: Optional[datetime] = None
    account_jobs: list["SyncJobResponse"] = Field(default_factory=list)

    @classmethod
    def from_job(
        cls,
        job: SyncJob,
        children: Optional[list[SyncJob]] = None,
    ) -> "SyncJobResponse":
        return cls(
            id=job.id,
            connection_id=job.connection_id,
            account_id=job.account_id,
            parent_id=job.parent_id,
            scope=job.scope,
            state=job.state,
            full_history=job.full_history,
            attempts=job.attempts,
            last_error_kind=job.last_error_kind,
            last_error=job.last_error,
            next_run_at=job.next_run_at,
            transactions_upserted=job.transactions_upserted,
            transactions_new=job.transactions_new,
            accounts_succeeded=job.accounts_succeeded,
            accounts_failed=job.accounts_failed,
            created_at=job.created_at,
            updated_at=job.updated_at,
            finished_at=job.finished_at,
            account_jobs=[cls.from_job(child) for child in children or []],
        )


class CancelResponse(BaseModel):
    job_id: UUID
    cancellation_requested: bool


class WebhookResponse(BaseModel):
    action: str
    connection_id: Optional[UUID] = None
    job_id: Optional[UUID] = None
