"""Application services."""

from finsync.application.services.job_queue import JobOutcome, JobQueue
from finsync.application.services.sync_job_dispatcher import SyncJobDispatcher
from finsync.application.services.sync_orchestrator import SyncOrchestrator
from finsync.application.services.sync_trigger_service import SyncTriggerService

__all__ = [
    "JobOutcome",
    "JobQueue",
    "SyncJobDispatcher",
    "SyncOrchestrator",
    "SyncTriggerService",
]
