"""Shared HTTP plumbing for provider adapters."""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from decimal import Decimal
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from finsync.domain.banking.exceptions import (
    ProviderError,
    ProviderRateLimitedError,
    ProviderTransientError,
    ProviderUnknownError,
)
from finsync.domain.banking.ports import ProviderAdapter
from finsync.domain.banking.value_objects import ProviderHealth
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.domain.shared.time import Clock

logger = logging.getLogger(__name__)


def parse_json(response: httpx.Response) -> Any:
    """Decode a JSON body keeping every number with a fraction as Decimal."""
    if not response.content:
        return {}
    return json.loads(response.text, parse_float=Decimal)


def parse_retry_after(value: Optional[str], clock: Clock) -> Optional[float]:
    """Retry-After is either delta-seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, (when - clock.now()).total_seconds())


class HttpProviderAdapter(ProviderAdapter):
    """
    Base class for adapters talking to a JSON HTTP API.

    Subclasses implement ``_raise_for_error`` to translate error responses
    into the provider error taxonomy. Transport failures and timeouts are
    always transient.

    Parameters
    ----------
    base_url
        API root
    timeout
        Per-request timeout in seconds
    latest_days
        Lookback for regular syncs
    full_history_days
        Lookback for full-history syncs
    transport
        Optional httpx transport (tests use ``httpx.MockTransport``)
    clock
        Time source
    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        timeout: float = 30.0,
        latest_days: int = 30,
        full_history_days: int = 730,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._latest_days = latest_days
        self._full_history_days = full_history_days
        self._transport = transport
        self._clock = clock or Clock()
        self._client: httpx.AsyncClient | None = None

    def _client_options(self) -> dict[str, Any]:
        """Extra ``httpx.AsyncClient`` keyword arguments (auth, TLS)."""
        return {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
                **self._client_options(),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def lookback_start(self, full_history: bool) -> date:
        days = self._full_history_days if full_history else self._latest_days
        return self._clock.now().date() - timedelta(days=days)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            msg = f"{self.kind.value} request timed out: {method} {path}"
            raise ProviderTransientError(msg, provider=self.kind.value) from e
        except httpx.TransportError as e:
            msg = f"{self.kind.value} transport error: {e}"
            raise ProviderTransientError(msg, provider=self.kind.value) from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        return self._decode(response, method, path)

    def _decode(self, response: httpx.Response, method: str, path: str) -> Any:
        """Return the parsed body of a successful response, raise otherwise."""
        if response.is_success:
            try:
                return parse_json(response)
            except json.JSONDecodeError as e:
                msg = f"{self.kind.value} returned a non-JSON body for {path}"
                raise ProviderUnknownError(msg, provider=self.kind.value) from e

        try:
            body = parse_json(response)
        except json.JSONDecodeError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        logger.warning(
            "%s returned %d for %s %s",
            self.kind.value,
            response.status_code,
            method,
            path,
        )
        self._raise_for_error(response, body)
        # Subclasses normally raise; anything left over is generic
        raise self._generic_error(response)

    def _raise_for_error(self, response: httpx.Response, body: dict) -> None:
        raise self._generic_error(response)

    def _generic_error(self, response: httpx.Response) -> ProviderError:
        status = response.status_code
        provider = self.kind.value
        if status == 429:  # noqa: PLR2004
            return ProviderRateLimitedError(
                provider=provider,
                provider_code=str(status),
                retry_after=parse_retry_after(
                    response.headers.get("Retry-After"),
                    self._clock,
                ),
            )
        if status >= 500:  # noqa: PLR2004
            return ProviderTransientError(
                f"{provider} server error ({status})",
                provider=provider,
                provider_code=str(status),
            )
        return ProviderUnknownError(
            f"{provider} request failed ({status})",
            provider=provider,
            provider_code=str(status),
        )

    async def healthcheck(self) -> ProviderHealth:
        try:
            await self._probe()
        except (ProviderError, ConfigurationError) as e:
            logger.warning("%s health check failed: %s", self.kind.value, e)
            return ProviderHealth(provider=self.kind, healthy=False, detail=str(e))
        return ProviderHealth(provider=self.kind, healthy=True)

    async def _probe(self) -> None:
        """Cheapest authenticated call proving the provider is reachable."""
        raise NotImplementedError
