"""Tests for the sync job delay queue."""

import asyncio
import random
from uuid import uuid4

import pytest

from finsync.application.services.job_queue import JobOutcome, JobQueue
from finsync.domain.banking.exceptions import (
    ProviderDisconnectedError,
    ProviderRateLimitedError,
    ProviderTransientError,
)
from finsync.domain.sync import (
    CancellationToken,
    ErrorKind,
    RetryPolicy,
    SyncJob,
    SyncJobState,
)

from tests.shared.fixtures.clock import FakeClock
from tests.shared.fixtures.factories import TENANT_ID
from tests.shared.fixtures.jobs import InMemorySyncJobRepository


def _job() -> SyncJob:
    return SyncJob.for_connection(TENANT_ID, uuid4())


class ScriptedRunner:
    """Raises the scripted errors in order, then succeeds."""

    def __init__(self, errors=(), outcome: JobOutcome = JobOutcome(2, 1)):
        self.errors = list(errors)
        self.outcome = outcome
        self.calls = 0

    async def __call__(self, job: SyncJob) -> JobOutcome:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repo() -> InMemorySyncJobRepository:
    return InMemorySyncJobRepository()


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0, rng=random.Random(3))


class TestJobQueue:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, repo, policy, clock):
        job = _job()
        queue = JobQueue(ScriptedRunner(), repo, policy, clock=clock)

        [done] = await queue.run([job])

        assert done.state == SyncJobState.SUCCEEDED
        assert done.attempts == 1
        assert (done.transactions_upserted, done.transactions_new) == (2, 1)
        assert repo.states_of(job) == [SyncJobState.RUNNING, SyncJobState.SUCCEEDED]
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried_with_backoff(self, repo, policy, clock):
        job = _job()
        runner = ScriptedRunner([ProviderTransientError(), ProviderTransientError()])
        queue = JobQueue(runner, repo, policy, clock=clock)

        await queue.run([job])

        assert job.state == SyncJobState.SUCCEEDED
        assert job.attempts == 3
        assert runner.calls == 3
        assert len(clock.sleeps) == 2
        assert 0.0 <= clock.sleeps[0] <= 1.0
        assert 0.0 <= clock.sleeps[1] <= 2.0
        assert repo.states_of(job) == [
            SyncJobState.RUNNING,
            SyncJobState.FAILED_RETRYABLE,
            SyncJobState.QUEUED,
            SyncJobState.RUNNING,
            SyncJobState.FAILED_RETRYABLE,
            SyncJobState.QUEUED,
            SyncJobState.RUNNING,
            SyncJobState.SUCCEEDED,
        ]

    @pytest.mark.asyncio
    async def test_exhausted_attempts_end_terminal(self, repo, policy, clock):
        job = _job()
        runner = ScriptedRunner([ProviderTransientError("flaky")] * 5)

        await JobQueue(runner, repo, policy, clock=clock).run([job])

        assert job.state == SyncJobState.FAILED_TERMINAL
        assert job.attempts == 3
        assert job.last_error_kind == ErrorKind.TRANSIENT
        assert job.last_error == "flaky"
        assert runner.calls == 3

    @pytest.mark.asyncio
    async def test_disconnect_is_never_retried(self, repo, policy, clock):
        job = _job()
        runner = ScriptedRunner([ProviderDisconnectedError()])

        await JobQueue(runner, repo, policy, clock=clock).run([job])

        assert job.state == SyncJobState.FAILED_TERMINAL
        assert job.last_error_kind == ErrorKind.DISCONNECTED
        assert runner.calls == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_unclassified_errors_are_retried_then_terminal(self, repo, policy, clock):
        job = _job()
        runner = ScriptedRunner([KeyError("surprise")] * 3)

        await JobQueue(runner, repo, policy, clock=clock).run([job])

        assert job.state == SyncJobState.FAILED_TERMINAL
        assert job.last_error_kind == ErrorKind.UNKNOWN
        assert runner.calls == 3

    @pytest.mark.asyncio
    async def test_rate_limit_waits_for_retry_after(self, repo, policy, clock):
        job = _job()
        runner = ScriptedRunner([ProviderRateLimitedError(retry_after=4.0)])

        await JobQueue(runner, repo, policy, clock=clock).run([job])

        assert job.state == SyncJobState.SUCCEEDED
        assert clock.sleeps == [4.0]

    @pytest.mark.asyncio
    async def test_cancelled_queue_never_runs_jobs(self, repo, policy, clock):
        token = CancellationToken()
        token.cancel("tenant disconnected")
        runner = ScriptedRunner()
        job = _job()

        await JobQueue(runner, repo, policy, clock=clock, token=token).run([job])

        assert runner.calls == 0
        assert job.state == SyncJobState.FAILED_TERMINAL
        assert job.last_error_kind == ErrorKind.CANCELLED
        assert job.last_error == "tenant disconnected"

    @pytest.mark.asyncio
    async def test_cancellation_during_backoff(self, repo, policy, clock):
        token = CancellationToken()
        job = _job()

        async def runner(j: SyncJob) -> JobOutcome:
            token.cancel("stop")
            raise ProviderTransientError()

        await JobQueue(runner, repo, policy, clock=clock, token=token).run([job])

        assert job.state == SyncJobState.FAILED_TERMINAL
        assert job.last_error_kind == ErrorKind.CANCELLED
        assert job.attempts == 1

    @pytest.mark.asyncio
    async def test_empty_run(self, repo, policy):
        assert await JobQueue(ScriptedRunner(), repo, policy).run([]) == []

    def test_needs_a_worker(self, repo, policy):
        with pytest.raises(ValueError):
            JobQueue(ScriptedRunner(), repo, policy, workers=0)


class TestConcurrencyLimits:
    @staticmethod
    def _tracking_runner():
        state = {"running": 0, "peak": 0}

        async def runner(job: SyncJob) -> JobOutcome:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
            for _ in range(5):
                await asyncio.sleep(0)
            state["running"] -= 1
            return JobOutcome()

        return runner, state

    @pytest.mark.asyncio
    async def test_worker_count_bounds_parallel_jobs(self, repo, policy, clock):
        runner, state = self._tracking_runner()
        jobs = [_job() for _ in range(6)]

        await JobQueue(runner, repo, policy, clock=clock, workers=2).run(jobs)

        assert state["peak"] == 2
        assert all(j.state == SyncJobState.SUCCEEDED for j in jobs)

    @pytest.mark.asyncio
    async def test_global_limit_is_shared(self, repo, policy, clock):
        runner, state = self._tracking_runner()
        limit = asyncio.Semaphore(1)
        first = JobQueue(runner, repo, policy, clock=clock, workers=3, global_limit=limit)
        second = JobQueue(runner, repo, policy, clock=clock, workers=3, global_limit=limit)

        await asyncio.gather(
            first.run([_job() for _ in range(3)]),
            second.run([_job() for _ in range(3)]),
        )

        assert state["peak"] == 1
