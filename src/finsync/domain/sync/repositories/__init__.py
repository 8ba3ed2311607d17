from finsync.domain.sync.repositories.sync_job_repository import SyncJobRepository

__all__ = ["SyncJobRepository"]
