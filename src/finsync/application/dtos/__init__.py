"""Data transfer objects for the application layer."""

from finsync.application.dtos.sync_events import (
    ConnectionSyncCompleted,
    WebhookOutcome,
)

__all__ = [
    "ConnectionSyncCompleted",
    "WebhookOutcome",
]
