"""In-memory sync job store recording every persisted transition."""

from typing import Optional
from uuid import UUID

from finsync.domain.sync import SyncJob, SyncJobRepository, SyncJobState


class InMemorySyncJobRepository(SyncJobRepository):
    def __init__(self) -> None:
        self.jobs: dict[UUID, SyncJob] = {}
        self.history: list[tuple[UUID, SyncJobState]] = []

    async def save(self, job: SyncJob) -> None:
        self.jobs[job.id] = job
        self.history.append((job.id, job.state))

    async def get(self, tenant_id: UUID, job_id: UUID) -> Optional[SyncJob]:
        job = self.jobs.get(job_id)
        if job is None or job.tenant_id != tenant_id:
            return None
        return job

    async def list_by_parent(self, tenant_id: UUID, parent_id: UUID) -> list[SyncJob]:
        return [
            job
            for job in self.jobs.values()
            if job.tenant_id == tenant_id and job.parent_id == parent_id
        ]

    def states_of(self, job: SyncJob) -> list[SyncJobState]:
        return [state for job_id, state in self.history if job_id == job.id]
