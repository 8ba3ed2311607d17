"""Notification publisher that only writes a log line."""

import logging

from finsync.application.dtos import ConnectionSyncCompleted
from finsync.application.ports import NotificationPublisher

logger = logging.getLogger(__name__)


class LoggingNotificationPublisher(NotificationPublisher):
    async def publish(self, event: ConnectionSyncCompleted) -> None:
        logger.info(
            "Sync completed for tenant %s connection %s: %s, %d new transaction(s), "
            "%d account(s) ok, %d failed",
            event.tenant_id,
            event.connection_id,
            event.state.value,
            event.transactions_new,
            event.accounts_succeeded,
            event.accounts_failed,
        )
