"""Sync orchestrator.

A connection-level job refreshes the account list of one connection and
fans out into one account-level job per enabled account. Account jobs run
on their own delay queue, retry independently and never roll each other
back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Optional, TypeVar
from uuid import UUID

from finsync.application.dtos import ConnectionSyncCompleted
from finsync.application.ports import NotificationPublisher
from finsync.application.services.job_queue import JobOutcome, JobQueue
from finsync.domain.banking.exceptions import (
    ConnectionNotFoundError,
    ProviderDisconnectedError,
)
from finsync.domain.banking.repositories import (
    AccountRepository,
    ConnectionRepository,
    TransactionRepository,
)
from finsync.domain.banking.value_objects import (
    Account,
    Connection,
    ConnectionStatus,
    RawTransaction,
)
from finsync.domain.normalization import (
    NormalizedAccount,
    RecordValidationError,
    normalize_account,
    normalize_batch,
)
from finsync.domain.shared.time import Clock
from finsync.domain.sync import (
    CancellationToken,
    ConnectionNotActiveError,
    RetryPolicy,
    SyncJob,
    SyncJobRepository,
    SyncJobState,
)

if TYPE_CHECKING:
    from finsync.infrastructure.providers.router import ProviderRouter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncOrchestrator:
    """
    Runs connection-level sync jobs end to end.

    Parameters
    ----------
    per_connection_concurrency
        Account jobs of one connection that may run at the same time, shared
        by every job of that connection that is in flight
    global_concurrency
        Jobs that may run at the same time across all connections
    provider_timeout
        Hard timeout in seconds for every single provider call
    """

    def __init__(  # noqa: PLR0913
        self,
        provider_router: ProviderRouter,
        connection_repository: ConnectionRepository,
        account_repository: AccountRepository,
        transaction_repository: TransactionRepository,
        job_repository: SyncJobRepository,
        notifier: Optional[NotificationPublisher] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        per_connection_concurrency: int = 4,
        global_concurrency: int = 16,
        provider_timeout: float = 30.0,
    ):
        self._providers = provider_router
        self._connections = connection_repository
        self._accounts = account_repository
        self._transactions = transaction_repository
        self._jobs = job_repository
        self._notifier = notifier
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock or Clock()
        self._per_connection = per_connection_concurrency
        self._connection_limits: dict[UUID, asyncio.Semaphore] = {}
        self._connection_holders: dict[UUID, int] = {}
        self._global_limit = asyncio.Semaphore(global_concurrency)
        self._provider_timeout = provider_timeout

    @property
    def job_repository(self) -> SyncJobRepository:
        return self._jobs

    async def run_connection_job(
        self,
        job: SyncJob,
        token: Optional[CancellationToken] = None,
    ) -> SyncJob:
        """
        Drive a connection-level job to a terminal state.

        Failures are recorded on the job, never raised. The connection
        stage (account refresh) is retried through the same delay queue as
        account jobs.
        """
        token = token or CancellationToken()
        queue = JobQueue(
            runner=lambda j: self._run_connection_stage(j, token),
            job_repository=self._jobs,
            retry_policy=self._retry_policy,
            clock=self._clock,
            workers=1,
            token=token,
        )
        await queue.run([job])

        logger.info(
            "Connection sync %s for connection %s finished %s "
            "(%d new, %d upserted, %d accounts ok, %d failed)",
            job.id,
            job.connection_id,
            job.state.value,
            job.transactions_new,
            job.transactions_upserted,
            job.accounts_succeeded,
            job.accounts_failed,
        )
        if self._notifier is not None:
            await self._notifier.publish(ConnectionSyncCompleted.from_job(job))
        return job

    # -------------------------------------------------------------------------
    # Connection stage
    # -------------------------------------------------------------------------

    async def _run_connection_stage(
        self,
        job: SyncJob,
        token: CancellationToken,
    ) -> JobOutcome:
        token.raise_if_cancelled()
        connection = await self._load_active_connection(job)
        adapter = self._providers.adapter_for(connection)

        raw_accounts = await self._guard_disconnect(
            connection,
            self._call(adapter.fetch_accounts(connection)),
        )
        snapshots = self._normalize_accounts(connection, raw_accounts)
        if snapshots:
            await self._accounts.upsert_snapshots(job.tenant_id, connection.id, snapshots)
        token.raise_if_cancelled()

        accounts = await self._accounts.list_enabled(job.tenant_id, connection.id)
        by_id = {account.id: account for account in accounts}
        children = [job.spawn_account_job(account.id) for account in accounts]
        for child in children:
            await self._jobs.save(child)

        account_queue = JobQueue(
            runner=lambda j: self._run_account_job(j, connection, by_id[j.account_id], token),
            job_repository=self._jobs,
            retry_policy=self._retry_policy,
            clock=self._clock,
            workers=self._per_connection,
            global_limit=self._global_limit,
            token=token,
        )
        async with self._connection_scope(connection.id):
            await account_queue.run(children)

        succeeded = [c for c in children if c.state == SyncJobState.SUCCEEDED]
        job.record_fan_out(succeeded=len(succeeded), failed=len(children) - len(succeeded))
        token.raise_if_cancelled()

        if succeeded or not children:
            await self._connections.touch_last_synced(
                job.tenant_id,
                connection.id,
                self._clock.now(),
            )
        return JobOutcome(
            transactions_upserted=sum(c.transactions_upserted for c in succeeded),
            transactions_new=sum(c.transactions_new for c in succeeded),
        )

    async def _load_active_connection(self, job: SyncJob) -> Connection:
        connection = await self._connections.get(job.tenant_id, job.connection_id)
        if connection is None:
            raise ConnectionNotFoundError(job.connection_id)
        if not connection.is_active:
            raise ConnectionNotActiveError(connection.id, connection.status.value)
        return connection

    def _normalize_accounts(
        self,
        connection: Connection,
        raw_accounts: list,
    ) -> list[NormalizedAccount]:
        snapshots = []
        for raw in raw_accounts:
            try:
                snapshots.append(normalize_account(raw))
            except RecordValidationError as e:
                logger.warning(
                    "Skipping malformed %s account %s on connection %s: %s",
                    connection.provider.value,
                    raw.external_id,
                    connection.id,
                    e.message,
                )
        return snapshots

    # -------------------------------------------------------------------------
    # Account stage
    # -------------------------------------------------------------------------

    async def _run_account_job(
        self,
        job: SyncJob,
        connection: Connection,
        account: Account,
        token: CancellationToken,
    ) -> JobOutcome:
        token.raise_if_cancelled()
        async with self._connection_limits[connection.id]:
            return await self._sync_account(job, connection, account, token)

    async def _sync_account(
        self,
        job: SyncJob,
        connection: Connection,
        account: Account,
        token: CancellationToken,
    ) -> JobOutcome:
        records = await self._guard_disconnect(
            connection,
            self._fetch_all_transactions(connection, account, job.full_history),
        )
        token.raise_if_cancelled()

        batch = normalize_batch(records, account.id, default_currency=account.currency)
        token.raise_if_cancelled()

        result = await self._transactions.upsert_transactions(
            job.tenant_id,
            account.id,
            batch.transactions,
        )
        await self._accounts.touch_last_synced(job.tenant_id, account.id, self._clock.now())
        logger.info(
            "Account %s synced: %d fetched, %d skipped, %d new, %d updated",
            account.id,
            len(records),
            len(batch.skipped),
            result.inserted,
            result.updated,
        )
        return JobOutcome(
            transactions_upserted=result.upserted,
            transactions_new=result.inserted,
        )

    async def _fetch_all_transactions(
        self,
        connection: Connection,
        account: Account,
        full_history: bool,
    ) -> list[RawTransaction]:
        adapter = self._providers.adapter_for(connection)
        records: list[RawTransaction] = []
        cursor: Optional[str] = None
        seen: set[str] = set()
        while True:
            page = await self._call(
                adapter.fetch_transactions(
                    connection,
                    account,
                    cursor,
                    full_history=full_history,
                ),
            )
            records.extend(page.records)
            if not page.has_more:
                return records
            if page.next_cursor in seen:
                logger.warning(
                    "Provider %s repeated cursor %s for account %s; stopping pagination",
                    connection.provider.value,
                    page.next_cursor,
                    account.id,
                )
                return records
            seen.add(page.next_cursor)
            cursor = page.next_cursor

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _connection_scope(self, connection_id: UUID) -> AsyncIterator[None]:
        """Share one account-job limit between overlapping jobs of a connection."""
        if connection_id not in self._connection_limits:
            self._connection_limits[connection_id] = asyncio.Semaphore(self._per_connection)
        holders = self._connection_holders.get(connection_id, 0)
        self._connection_holders[connection_id] = holders + 1
        try:
            yield
        finally:
            self._connection_holders[connection_id] -= 1
            if not self._connection_holders[connection_id]:
                del self._connection_holders[connection_id]
                del self._connection_limits[connection_id]

    async def _call(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self._provider_timeout)

    async def _guard_disconnect(self, connection: Connection, call: Awaitable[T]) -> T:
        try:
            return await call
        except ProviderDisconnectedError as e:
            status = ConnectionStatus.EXPIRED if e.expired else ConnectionStatus.DISCONNECTED
            await self._connections.update_status(
                connection.tenant_id,
                connection.id,
                status,
                error=e.message,
            )
            logger.warning(
                "Connection %s (%s) is now %s: %s",
                connection.id,
                connection.provider.value,
                status.value,
                e.message,
            )
            raise
