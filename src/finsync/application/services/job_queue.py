"""Delay queue for sync jobs.

Workers pull queued jobs, run them and record the outcome. A retryable
failure puts the job into ``failed_retryable`` and schedules it back onto
the queue once its backoff delay has elapsed; the worker itself never
waits on a retry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from finsync.domain.shared.time import Clock
from finsync.domain.sync import (
    CancellationToken,
    ErrorKind,
    RetryPolicy,
    SyncJob,
    SyncJobRepository,
    classify_error,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobOutcome:
    """Counters a successful job run reports back."""

    transactions_upserted: int = 0
    transactions_new: int = 0


JobRunner = Callable[[SyncJob], Awaitable[JobOutcome]]


class JobQueue:
    """
    Runs a set of sync jobs to terminal states.

    Parameters
    ----------
    runner
        Coroutine doing the actual work of one attempt
    job_repository
        Every state transition is persisted through it
    retry_policy
        Decides whether and when a failed attempt is retried
    workers
        Number of jobs that may run at the same time on this queue
    global_limit
        Semaphore shared with other queues, bounding total concurrency
    token
        Cooperative cancellation for all jobs on this queue
    """

    def __init__(  # noqa: PLR0913
        self,
        runner: JobRunner,
        job_repository: SyncJobRepository,
        retry_policy: RetryPolicy,
        clock: Optional[Clock] = None,
        workers: int = 1,
        global_limit: Optional[asyncio.Semaphore] = None,
        token: Optional[CancellationToken] = None,
    ):
        if workers < 1:
            msg = "A job queue needs at least one worker"
            raise ValueError(msg)
        self._runner = runner
        self._repo = job_repository
        self._policy = retry_policy
        self._clock = clock or Clock()
        self._workers = workers
        self._global_limit = global_limit
        self._token = token or CancellationToken()

        self._queue: asyncio.Queue[SyncJob] = asyncio.Queue()
        self._delayed: set[asyncio.Task] = set()
        self._pending = 0
        self._idle: Optional[asyncio.Event] = None

    async def run(self, jobs: Sequence[SyncJob]) -> list[SyncJob]:
        """Drive all jobs to a terminal state and return them."""
        jobs = list(jobs)
        if not jobs:
            return jobs

        self._idle = asyncio.Event()
        for job in jobs:
            self._pending += 1
            self._queue.put_nowait(job)

        workers = [
            asyncio.create_task(self._worker())
            for _ in range(min(self._workers, len(jobs)))
        ]
        try:
            await self._idle.wait()
        finally:
            for task in (*workers, *self._delayed):
                task.cancel()
            await asyncio.gather(*workers, *self._delayed, return_exceptions=True)
            self._delayed.clear()
        return jobs

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                finished = await self._process(job)
            except Exception:
                # Bookkeeping failed; the job can no longer be tracked.
                logger.exception("Sync job %s could not be processed", job.id)
                finished = True
            finally:
                self._queue.task_done()
            if finished:
                self._job_finished()

    def _job_finished(self) -> None:
        self._pending -= 1
        if self._pending <= 0 and self._idle is not None:
            self._idle.set()

    async def _process(self, job: SyncJob) -> bool:
        """Run one attempt. Returns True once the job is terminal."""
        if self._token.cancelled:
            await self._cancel(job)
            return True

        if self._global_limit is None:
            return await self._attempt(job)
        async with self._global_limit:
            return await self._attempt(job)

    async def _attempt(self, job: SyncJob) -> bool:
        job.start(self._clock.now())
        await self._repo.save(job)

        try:
            outcome = await self._runner(job)
        except Exception as e:
            return await self._handle_failure(job, e)

        job.succeed(
            transactions_upserted=outcome.transactions_upserted,
            transactions_new=outcome.transactions_new,
            now=self._clock.now(),
        )
        await self._repo.save(job)
        logger.debug("Sync job %s succeeded on attempt %d", job.id, job.attempts)
        return True

    async def _handle_failure(self, job: SyncJob, error: Exception) -> bool:
        kind = classify_error(error)
        message = str(error) or error.__class__.__name__

        if self._policy.should_retry(kind, job.attempts):
            delay = self._policy.delay_for(
                job.attempts,
                kind,
                retry_after=getattr(error, "retry_after", None),
            )
            now = self._clock.now()
            job.fail_retryable(kind, message, next_run_at=now + timedelta(seconds=delay), now=now)
            await self._repo.save(job)
            logger.warning(
                "Sync job %s attempt %d failed (%s): %s; retrying in %.2fs",
                job.id,
                job.attempts,
                kind.value,
                message,
                delay,
            )
            task = asyncio.create_task(self._requeue_after(job, delay))
            self._delayed.add(task)
            task.add_done_callback(self._delayed.discard)
            return False

        job.fail_terminal(kind, message, now=self._clock.now())
        await self._repo.save(job)
        if kind == ErrorKind.CANCELLED:
            logger.info("Sync job %s cancelled: %s", job.id, message)
        elif kind.is_retryable:
            logger.error(
                "Sync job %s failed after %d attempts (%s): %s",
                job.id,
                job.attempts,
                kind.value,
                message,
            )
        else:
            logger.warning(
                "Sync job %s failed permanently (%s): %s",
                job.id,
                kind.value,
                message,
            )
        return True

    async def _requeue_after(self, job: SyncJob, delay: float) -> None:
        await self._clock.sleep(delay)
        try:
            if self._token.cancelled:
                await self._cancel(job)
                self._job_finished()
                return
            job.requeue(self._clock.now())
            await self._repo.save(job)
        except Exception:
            logger.exception("Sync job %s could not be requeued", job.id)
            self._job_finished()
            return
        self._queue.put_nowait(job)

    async def _cancel(self, job: SyncJob) -> None:
        job.fail_terminal(
            ErrorKind.CANCELLED,
            self._token.reason or "Sync job was cancelled",
            now=self._clock.now(),
        )
        await self._repo.save(job)
        logger.info("Sync job %s cancelled before running", job.id)
