"""Downstream notification port.

Delivery (email, push, ...) is owned by another system; the sync
pipeline only announces what happened.
"""

from abc import ABC, abstractmethod

from finsync.application.dtos.sync_events import ConnectionSyncCompleted


class NotificationPublisher(ABC):
    """Publishes sync outcome events to downstream consumers."""

    @abstractmethod
    async def publish(self, event: ConnectionSyncCompleted) -> None:
        """
        Publish a completed connection sync.

        Implementations must not raise on delivery failure; a lost
        notification never fails a sync.

        Parameters
        ----------
        event
            Outcome of the connection-level job
        """

    async def close(self) -> None:  # noqa: B027
        return None
