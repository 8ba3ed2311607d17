"""Teller webhook verification.

``Teller-Signature: t=<unix ts>,v1=<hex>[,v1=<hex>]`` where each ``v1`` is
HMAC-SHA256 of ``"{t}.{body}"`` under a signing secret. Several ``v1``
values appear while secrets are being rotated.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Mapping
from typing import Optional

from finsync.application.ports import WebhookAction, WebhookEvent, WebhookVerifier
from finsync.domain.banking.exceptions import WebhookAuthenticationError
from finsync.domain.banking.value_objects import ProviderKind
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.domain.shared.time import Clock
from finsync.infrastructure.webhooks._headers import header

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 3 * 60

_ACTIONS = {
    "transactions.processed": WebhookAction.SYNC_LATEST,
    "enrollment.disconnected": WebhookAction.MARK_DISCONNECTED,
}


class TellerWebhookVerifier(WebhookVerifier):
    kind = ProviderKind.TELLER

    def __init__(
        self,
        signing_secret: str,
        clock: Optional[Clock] = None,
        tolerance_seconds: int = SIGNATURE_TOLERANCE_SECONDS,
    ):
        if not signing_secret:
            msg = "Teller webhook signing secret must be configured"
            raise ConfigurationError(msg)
        self._secret = signing_secret.encode()
        self._clock = clock or Clock()
        self._tolerance = tolerance_seconds

    async def verify(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        signature = header(headers, "Teller-Signature")
        if not signature:
            raise self._reject("missing Teller-Signature header")

        timestamp, candidates = _parse_signature(signature)
        if timestamp is None or not candidates:
            raise self._reject("malformed signature header")
        if abs(self._clock.now().timestamp() - timestamp) > self._tolerance:
            raise self._reject("signature timestamp outside tolerance")

        signed = f"{timestamp}.".encode() + body
        expected = hmac.new(self._secret, signed, hashlib.sha256).hexdigest()
        if not any(hmac.compare_digest(expected, c) for c in candidates):
            raise self._reject("signature mismatch")

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise self._reject("body is not JSON") from e
        if not isinstance(payload, dict):
            raise self._reject("body is not a JSON object")

        event_type = str(payload.get("type") or "")
        data = payload.get("payload")
        if not isinstance(data, dict):
            data = {}
        return WebhookEvent(
            provider=self.kind,
            action=_ACTIONS.get(event_type, WebhookAction.IGNORE),
            code=event_type,
            provider_reference=data.get("enrollment_id"),
        )

    def _reject(self, reason: str) -> WebhookAuthenticationError:
        logger.warning("Rejected Teller webhook: %s", reason)
        return WebhookAuthenticationError(self.kind.value, reason)


def _parse_signature(value: str) -> tuple[Optional[int], list[str]]:
    timestamp = None
    candidates = []
    for part in value.split(","):
        name, _, item = part.strip().partition("=")
        if name == "t":
            try:
                timestamp = int(item)
            except ValueError:
                return None, []
        elif name == "v1" and item:
            candidates.append(item)
    return timestamp, candidates
