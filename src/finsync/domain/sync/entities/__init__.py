from finsync.domain.sync.entities.sync_job import SyncJob

__all__ = ["SyncJob"]
