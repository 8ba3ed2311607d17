"""HTTP notification publisher: POSTs sync events as JSON to a fixed URL."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from finsync.application.dtos import ConnectionSyncCompleted
from finsync.application.ports import NotificationPublisher

logger = logging.getLogger(__name__)


class HttpNotificationPublisher(NotificationPublisher):
    """Best-effort delivery; failures are logged and dropped."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def publish(self, event: ConnectionSyncCompleted) -> None:
        try:
            client = await self._get_client()
            response = await client.post(self._url, json=event.to_dict())
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning("Notification endpoint timeout: %s", e)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Notification endpoint returned error %d: %s",
                e.response.status_code,
                e.response.text[:200] if e.response.text else "no body",
            )
        except httpx.HTTPError as e:
            logger.warning("Notification delivery failed: %s", e)
        else:
            logger.debug("Published sync event for job %s", event.job_id)
