"""Notification publisher implementations."""

from finsync.infrastructure.notifications.http_publisher import HttpNotificationPublisher
from finsync.infrastructure.notifications.logging_publisher import (
    LoggingNotificationPublisher,
)

__all__ = [
    "HttpNotificationPublisher",
    "LoggingNotificationPublisher",
]
