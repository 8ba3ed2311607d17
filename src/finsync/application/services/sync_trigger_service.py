"""Entry points that start syncs: schedule, webhook and manual."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Optional
from uuid import UUID

from finsync.application.dtos import WebhookOutcome
from finsync.application.ports import WebhookAction, WebhookVerifier
from finsync.application.services.sync_job_dispatcher import SyncJobDispatcher
from finsync.domain.banking.exceptions import (
    ConnectionNotFoundError,
    UnsupportedProviderError,
)
from finsync.domain.banking.repositories import ConnectionRepository
from finsync.domain.banking.value_objects import ConnectionStatus, ProviderKind
from finsync.domain.sync import ConnectionNotActiveError, SyncJob

logger = logging.getLogger(__name__)


class SyncTriggerService:
    """Translates triggers into dispatched connection-level jobs."""

    def __init__(
        self,
        connection_repository: ConnectionRepository,
        dispatcher: SyncJobDispatcher,
        webhook_verifiers: Optional[Iterable[WebhookVerifier]] = None,
    ):
        self._connections = connection_repository
        self._dispatcher = dispatcher
        self._verifiers: dict[ProviderKind, WebhookVerifier] = {
            verifier.kind: verifier for verifier in webhook_verifiers or ()
        }

    async def trigger_manual(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        full_history: bool = False,
    ) -> SyncJob:
        """
        Start a sync on behalf of a user.

        Raises
        ------
        ConnectionNotFoundError
            If the tenant has no such connection
        ConnectionNotActiveError
            If the connection is disconnected or expired
        """
        connection = await self._connections.get(tenant_id, connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        if not connection.is_active:
            raise ConnectionNotActiveError(connection.id, connection.status.value)
        job = SyncJob.for_connection(tenant_id, connection_id, full_history=full_history)
        return await self._dispatcher.dispatch(job)

    async def scheduled_tick(self) -> list[SyncJob]:
        """Dispatch a latest-window sync for every active connection of every tenant."""
        connections = await self._connections.list_active()
        jobs = []
        for connection in connections:
            job = SyncJob.for_connection(connection.tenant_id, connection.id)
            jobs.append(await self._dispatcher.dispatch(job))
        logger.info("Scheduled tick dispatched %d sync job(s)", len(jobs))
        return jobs

    async def handle_webhook(
        self,
        provider: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> WebhookOutcome:
        """
        Verify a provider callback and act on it.

        Verification happens before any database access; a callback that
        fails it has no side effects.
        """
        try:
            kind = ProviderKind(provider)
        except ValueError as e:
            raise UnsupportedProviderError(provider) from e
        verifier = self._verifiers.get(kind)
        if verifier is None:
            raise UnsupportedProviderError(kind.value)

        event = await verifier.verify(headers, body)
        if event.action == WebhookAction.IGNORE or not event.provider_reference:
            logger.debug("Ignoring %s webhook %s", kind.value, event.code)
            return WebhookOutcome(action=WebhookAction.IGNORE.value)

        connection = await self._connections.find_by_provider_reference(
            kind,
            event.provider_reference,
        )
        if connection is None:
            logger.warning(
                "%s webhook %s for unknown reference %s",
                kind.value,
                event.code,
                event.provider_reference,
            )
            return WebhookOutcome(action=WebhookAction.IGNORE.value)

        if event.action in (WebhookAction.MARK_DISCONNECTED, WebhookAction.MARK_EXPIRED):
            status = (
                ConnectionStatus.EXPIRED
                if event.action == WebhookAction.MARK_EXPIRED
                else ConnectionStatus.DISCONNECTED
            )
            await self._connections.update_status(
                connection.tenant_id,
                connection.id,
                status,
                error=f"{kind.value} webhook {event.code}",
            )
            logger.info("Connection %s marked %s by webhook", connection.id, status.value)
            return WebhookOutcome(action=event.action.value, connection_id=connection.id)

        if not connection.is_active:
            logger.info(
                "Not syncing %s connection %s on webhook %s",
                connection.status.value,
                connection.id,
                event.code,
            )
            return WebhookOutcome(
                action=WebhookAction.IGNORE.value,
                connection_id=connection.id,
            )

        job = SyncJob.for_connection(
            connection.tenant_id,
            connection.id,
            full_history=event.action == WebhookAction.SYNC_FULL_HISTORY,
        )
        await self._dispatcher.dispatch(job)
        return WebhookOutcome(
            action=event.action.value,
            connection_id=connection.id,
            job_id=job.id,
        )
