"""Runs connection sync jobs in the background."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from uuid import UUID

from finsync.application.services.sync_orchestrator import SyncOrchestrator
from finsync.domain.sync import CancellationToken, SyncJob, SyncJobRepository

logger = logging.getLogger(__name__)


class SyncJobDispatcher:
    """
    Fire-and-forget execution of connection-level jobs.

    Tasks are referenced until they finish so the event loop cannot
    garbage-collect them mid-run. ``drain`` waits for everything in flight,
    which is what a graceful shutdown needs.
    """

    def __init__(self, orchestrator: SyncOrchestrator, job_repository: SyncJobRepository):
        self._orchestrator = orchestrator
        self._jobs = job_repository
        self._tasks: dict[UUID, asyncio.Task] = {}
        self._tokens: dict[UUID, CancellationToken] = {}

    @property
    def active_jobs(self) -> list[UUID]:
        return list(self._tasks)

    async def dispatch(self, job: SyncJob) -> SyncJob:
        """Persist a queued job and start running it in the background."""
        await self._jobs.save(job)
        token = CancellationToken()
        task = asyncio.create_task(
            self._orchestrator.run_connection_job(job, token),
            name=f"sync-job-{job.id}",
        )
        self._tasks[job.id] = task
        self._tokens[job.id] = token
        task.add_done_callback(lambda t, job_id=job.id: self._on_done(job_id, t))
        logger.info(
            "Dispatched %s sync job %s for connection %s",
            "full-history" if job.full_history else "latest",
            job.id,
            job.connection_id,
        )
        return job

    def cancel(self, job_id: UUID, reason: str = "Sync job was cancelled") -> bool:
        """Request cooperative cancellation. Returns False if the job is not running here."""
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel(reason)
        logger.info("Cancellation requested for sync job %s", job_id)
        return True

    async def wait(self, job_id: UUID) -> Optional[SyncJob]:
        task = self._tasks.get(job_id)
        if task is None:
            return None
        return await asyncio.shield(task)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for all in-flight jobs; cancel whatever is left after ``timeout``."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.info("Draining %d sync job(s)", len(tasks))
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning("Cancelling %d sync job(s) still running at shutdown", len(pending))
            for job_id in list(self._tokens):
                self.cancel(job_id, "Service shutting down")
            await asyncio.wait(pending)

    def _on_done(self, job_id: UUID, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        self._tokens.pop(job_id, None)
        if task.cancelled():
            logger.warning("Sync job %s task was cancelled", job_id)
            return
        error = task.exception()
        if error is not None:
            logger.error("Sync job %s crashed", job_id, exc_info=error)
