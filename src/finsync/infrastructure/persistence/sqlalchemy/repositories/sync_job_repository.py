"""SQLAlchemy implementation of SyncJobRepository."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select

from finsync.domain.sync import (
    ErrorKind,
    SyncJob,
    SyncJobRepository,
    SyncJobState,
    SyncScope,
)
from finsync.infrastructure.persistence.sqlalchemy.database_router import (
    DatabaseRouter,
    Operation,
)
from finsync.infrastructure.persistence.sqlalchemy.models import SyncJobModel
from finsync.infrastructure.persistence.sqlalchemy.repositories._utils import aware


class SyncJobRepositorySQLAlchemy(SyncJobRepository):
    def __init__(self, router: DatabaseRouter):
        self._router = router

    async def save(self, job: SyncJob) -> None:
        async with self._router.session(job.tenant_id, Operation.WRITE) as session:
            model = await session.get(SyncJobModel, job.id)
            if model is None:
                model = SyncJobModel(
                    id=job.id,
                    tenant_id=job.tenant_id,
                    connection_id=job.connection_id,
                    account_id=job.account_id,
                    parent_id=job.parent_id,
                    scope=job.scope.value,
                    full_history=job.full_history,
                    created_at=job.created_at,
                )
                session.add(model)
            model.state = job.state.value
            model.attempts = job.attempts
            model.last_error_kind = job.last_error_kind.value if job.last_error_kind else None
            model.last_error = job.last_error
            model.next_run_at = job.next_run_at
            model.finished_at = job.finished_at
            model.transactions_upserted = job.transactions_upserted
            model.transactions_new = job.transactions_new
            model.accounts_succeeded = job.accounts_succeeded
            model.accounts_failed = job.accounts_failed
            model.updated_at = job.updated_at

    async def get(self, tenant_id: UUID, job_id: UUID) -> Optional[SyncJob]:
        stmt = select(SyncJobModel).where(
            SyncJobModel.tenant_id == tenant_id,
            SyncJobModel.id == job_id,
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_by_parent(self, tenant_id: UUID, parent_id: UUID) -> list[SyncJob]:
        stmt = (
            select(SyncJobModel)
            .where(
                SyncJobModel.tenant_id == tenant_id,
                SyncJobModel.parent_id == parent_id,
            )
            .order_by(SyncJobModel.created_at)
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    @staticmethod
    def _to_domain(model: SyncJobModel) -> SyncJob:
        return SyncJob(
            id=model.id,
            tenant_id=model.tenant_id,
            connection_id=model.connection_id,
            scope=SyncScope(model.scope),
            account_id=model.account_id,
            parent_id=model.parent_id,
            full_history=model.full_history,
            state=SyncJobState(model.state),
            attempts=model.attempts,
            last_error_kind=(
                ErrorKind(model.last_error_kind) if model.last_error_kind else None
            ),
            last_error=model.last_error,
            next_run_at=aware(model.next_run_at),
            transactions_upserted=model.transactions_upserted,
            transactions_new=model.transactions_new,
            accounts_succeeded=model.accounts_succeeded,
            accounts_failed=model.accounts_failed,
            created_at=aware(model.created_at),
            updated_at=aware(model.updated_at),
            finished_at=aware(model.finished_at),
        )
