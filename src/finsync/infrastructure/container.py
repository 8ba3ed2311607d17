"""Service wiring shared by the API and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from finsync.application.ports import NotificationPublisher, WebhookVerifier
from finsync.application.services import (
    SyncJobDispatcher,
    SyncOrchestrator,
    SyncTriggerService,
)
from finsync.domain.banking.value_objects import ProviderKind
from finsync.domain.shared.time import Clock
from finsync.domain.sync import RetryPolicy
from finsync.infrastructure.notifications import (
    HttpNotificationPublisher,
    LoggingNotificationPublisher,
)
from finsync.infrastructure.persistence.sqlalchemy import DatabaseRouter
from finsync.infrastructure.persistence.sqlalchemy.repositories import (
    AccountRepositorySQLAlchemy,
    ConnectionRepositorySQLAlchemy,
    SyncJobRepositorySQLAlchemy,
    TransactionRepositorySQLAlchemy,
)
from finsync.infrastructure.providers import (
    PlaidAdapter,
    ProviderRouter,
    build_provider_router,
)
from finsync.infrastructure.webhooks import (
    PlaidWebhookVerifier,
    TellerWebhookVerifier,
)
from finsync_config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a running process needs, built once."""

    settings: Settings
    database: DatabaseRouter
    providers: ProviderRouter
    connections: ConnectionRepositorySQLAlchemy
    accounts: AccountRepositorySQLAlchemy
    transactions: TransactionRepositorySQLAlchemy
    jobs: SyncJobRepositorySQLAlchemy
    notifier: NotificationPublisher
    orchestrator: SyncOrchestrator
    dispatcher: SyncJobDispatcher
    triggers: SyncTriggerService
    webhook_verifiers: list[WebhookVerifier] = field(default_factory=list)

    async def startup(self) -> None:
        """Fail fast if a persisted connection has no registered adapter."""
        kinds = await self.connections.list_provider_kinds()
        self.providers.ensure_supports(kinds)
        logger.info("Startup check passed for provider kinds: %s", sorted(kinds) or "none")

    async def shutdown(self, drain_timeout: Optional[float] = 30.0) -> None:
        await self.dispatcher.drain(timeout=drain_timeout)
        await self.providers.close()
        await self.notifier.close()
        await self.database.dispose()
        logger.info("Service container shut down")


def build_container(
    settings: Settings,
    clock: Optional[Clock] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    database: Optional[DatabaseRouter] = None,
    providers: Optional[ProviderRouter] = None,
) -> ServiceContainer:
    """Wire repositories, adapters and services from settings."""
    clock = clock or Clock()
    database = database or DatabaseRouter.from_settings(settings, clock=clock)
    providers = providers or build_provider_router(settings, clock=clock, transport=transport)

    connections = ConnectionRepositorySQLAlchemy(database)
    accounts = AccountRepositorySQLAlchemy(database)
    transactions = TransactionRepositorySQLAlchemy(database)
    jobs = SyncJobRepositorySQLAlchemy(database)

    notifier: NotificationPublisher
    if settings.notification_webhook_url:
        notifier = HttpNotificationPublisher(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
            transport=transport,
        )
    else:
        notifier = LoggingNotificationPublisher()

    orchestrator = SyncOrchestrator(
        provider_router=providers,
        connection_repository=connections,
        account_repository=accounts,
        transaction_repository=transactions,
        job_repository=jobs,
        notifier=notifier,
        retry_policy=RetryPolicy(
            max_attempts=settings.sync_max_attempts,
            base_delay=settings.sync_backoff_base_seconds,
            max_delay=settings.sync_backoff_cap_seconds,
        ),
        clock=clock,
        per_connection_concurrency=settings.sync_per_connection_concurrency,
        global_concurrency=settings.sync_global_concurrency,
        provider_timeout=settings.provider_timeout_seconds,
    )
    dispatcher = SyncJobDispatcher(orchestrator, jobs)
    verifiers = _build_webhook_verifiers(settings, providers, clock)
    triggers = SyncTriggerService(connections, dispatcher, verifiers)

    return ServiceContainer(
        settings=settings,
        database=database,
        providers=providers,
        connections=connections,
        accounts=accounts,
        transactions=transactions,
        jobs=jobs,
        notifier=notifier,
        orchestrator=orchestrator,
        dispatcher=dispatcher,
        triggers=triggers,
        webhook_verifiers=verifiers,
    )


def _build_webhook_verifiers(
    settings: Settings,
    providers: ProviderRouter,
    clock: Clock,
) -> list[WebhookVerifier]:
    verifiers: list[WebhookVerifier] = []
    if providers.supports(ProviderKind.PLAID):
        plaid = providers.adapter_for(ProviderKind.PLAID)
        if isinstance(plaid, PlaidAdapter):
            verifiers.append(
                PlaidWebhookVerifier(plaid.get_webhook_verification_key, clock=clock),
            )
    secret = settings.teller_signing_secret.get_secret_value()
    if providers.supports(ProviderKind.TELLER) and secret:
        verifiers.append(TellerWebhookVerifier(secret, clock=clock))
    return verifiers
