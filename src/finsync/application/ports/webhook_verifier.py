"""Webhook verification port."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from finsync.domain.banking.value_objects import ProviderKind


class WebhookAction(str, Enum):
    """What a verified provider callback asks us to do."""

    SYNC_LATEST = "sync_latest"
    SYNC_FULL_HISTORY = "sync_full_history"
    MARK_DISCONNECTED = "mark_disconnected"
    MARK_EXPIRED = "mark_expired"
    IGNORE = "ignore"


@dataclass(frozen=True)
class WebhookEvent:
    provider: ProviderKind
    action: WebhookAction
    code: str
    provider_reference: Optional[str] = None


class WebhookVerifier(ABC):
    """Authenticates a provider callback and translates it into an event."""

    kind: ProviderKind

    @abstractmethod
    async def verify(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        """
        Verify the callback signature and parse the payload.

        Parameters
        ----------
        headers
            Request headers; lookups are case-insensitive
        body
            Raw request body, exactly as received

        Returns
        -------
        The event the callback describes

        Raises
        ------
        WebhookAuthenticationError
            If the signature, its age or the body digest does not check out
        """
