"""Repository interface for sync job records."""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finsync.domain.sync.entities import SyncJob


class SyncJobRepository(ABC):
    """Persists every state transition of a sync job."""

    @abstractmethod
    async def save(self, job: SyncJob) -> None:
        """Insert or update the job record."""

    @abstractmethod
    async def get(self, tenant_id: UUID, job_id: UUID) -> Optional[SyncJob]:
        """Find a job owned by a tenant."""

    @abstractmethod
    async def list_by_parent(self, tenant_id: UUID, parent_id: UUID) -> list[SyncJob]:
        """Account-level jobs spawned by a connection-level job."""
