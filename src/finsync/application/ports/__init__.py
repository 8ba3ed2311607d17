"""Application layer ports (aka interfaces)."""

from finsync.application.ports.notification_publisher import NotificationPublisher
from finsync.application.ports.webhook_verifier import (
    WebhookAction,
    WebhookEvent,
    WebhookVerifier,
)

__all__ = [
    "NotificationPublisher",
    "WebhookAction",
    "WebhookEvent",
    "WebhookVerifier",
]
