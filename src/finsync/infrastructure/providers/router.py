"""Provider router: static registry of adapters by provider kind."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Optional, Union

import httpx

from finsync.domain.banking.exceptions import UnsupportedProviderError
from finsync.domain.banking.ports import ProviderAdapter
from finsync.domain.banking.value_objects import (
    Connection,
    ProviderHealth,
    ProviderKind,
)
from finsync.domain.shared.time import Clock
from finsync.infrastructure.providers.enablebanking import EnableBankingAdapter
from finsync.infrastructure.providers.gocardless import GoCardlessAdapter
from finsync.infrastructure.providers.plaid import PlaidAdapter
from finsync.infrastructure.providers.teller import TellerAdapter

if TYPE_CHECKING:
    from finsync_config.settings import Settings

logger = logging.getLogger(__name__)


class ProviderRouter:
    """
    Resolves the adapter for a connection.

    The registry is built once at startup and never changes afterwards.
    """

    def __init__(self, adapters: Mapping[ProviderKind, ProviderAdapter]):
        self._adapters: dict[ProviderKind, ProviderAdapter] = dict(adapters)

    @property
    def kinds(self) -> frozenset[ProviderKind]:
        return frozenset(self._adapters)

    def supports(self, kind: Union[ProviderKind, str]) -> bool:
        try:
            return ProviderKind(kind) in self._adapters
        except ValueError:
            return False

    def adapter_for(self, target: Union[ProviderKind, str, Connection]) -> ProviderAdapter:
        """
        Return the adapter for a provider kind or a connection.

        Raises
        ------
        UnsupportedProviderError
            If no adapter is registered for the kind
        """
        raw = target.provider if isinstance(target, Connection) else target
        try:
            kind = ProviderKind(raw)
        except ValueError as e:
            raise UnsupportedProviderError(str(raw)) from e
        adapter = self._adapters.get(kind)
        if adapter is None:
            raise UnsupportedProviderError(kind.value)
        return adapter

    def ensure_supports(self, kinds: Iterable[Union[ProviderKind, str]]) -> None:
        """Fail fast at startup if a persisted connection has no adapter."""
        for kind in kinds:
            if not self.supports(kind):
                raw = kind.value if isinstance(kind, ProviderKind) else kind
                raise UnsupportedProviderError(str(raw))

    async def healthcheck(self) -> list[ProviderHealth]:
        adapters = sorted(self._adapters.values(), key=lambda a: a.kind.value)
        return list(await asyncio.gather(*(a.healthcheck() for a in adapters)))

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()


def build_provider_router(
    settings: Settings,
    clock: Optional[Clock] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRouter:
    """Instantiate every enabled provider adapter from settings."""
    common = {
        "timeout": settings.provider_timeout_seconds,
        "latest_days": settings.sync_latest_days,
        "full_history_days": settings.sync_full_history_days,
        "transport": transport,
        "clock": clock,
    }
    adapters: dict[ProviderKind, ProviderAdapter] = {}

    if settings.plaid_enabled:
        adapters[ProviderKind.PLAID] = PlaidAdapter(
            client_id=settings.plaid_client_id,
            secret=settings.plaid_secret.get_secret_value(),
            base_url=settings.plaid_base_url,
            **common,
        )
    if settings.teller_enabled:
        adapters[ProviderKind.TELLER] = TellerAdapter(
            base_url=settings.teller_base_url,
            certificate_path=settings.teller_certificate_path,
            private_key_path=settings.teller_private_key_path,
            **common,
        )
    if settings.gocardless_enabled:
        adapters[ProviderKind.GOCARDLESS] = GoCardlessAdapter(
            secret_id=settings.gocardless_secret_id,
            secret_key=settings.gocardless_secret_key.get_secret_value(),
            base_url=settings.gocardless_base_url,
            **common,
        )
    if settings.enablebanking_enabled:
        adapters[ProviderKind.ENABLEBANKING] = EnableBankingAdapter(
            application_id=settings.enablebanking_application_id,
            private_key_path=settings.enablebanking_private_key_path,
            base_url=settings.enablebanking_base_url,
            **common,
        )

    logger.info(
        "Provider adapters registered: %s",
        ", ".join(sorted(k.value for k in adapters)) or "none",
    )
    return ProviderRouter(adapters)
