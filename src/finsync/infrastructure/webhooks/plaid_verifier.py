"""Plaid webhook verification.

Plaid signs every webhook with an ES256 JWT in the ``Plaid-Verification``
header. The signing key is looked up by ``kid`` and cached; the token
must be recent and carry the SHA-256 of the exact request body.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional

import jwt

from finsync.application.ports import WebhookAction, WebhookEvent, WebhookVerifier
from finsync.domain.banking.exceptions import WebhookAuthenticationError
from finsync.domain.banking.value_objects import ProviderKind
from finsync.domain.shared.time import Clock
from finsync.infrastructure.webhooks._headers import header

logger = logging.getLogger(__name__)

MAX_TOKEN_AGE_SECONDS = 5 * 60

KeySource = Callable[[str], Awaitable[dict[str, Any]]]

_TRANSACTION_ACTIONS = {
    "SYNC_UPDATES_AVAILABLE": WebhookAction.SYNC_LATEST,
    "DEFAULT_UPDATE": WebhookAction.SYNC_LATEST,
    "INITIAL_UPDATE": WebhookAction.SYNC_LATEST,
    "HISTORICAL_UPDATE": WebhookAction.SYNC_FULL_HISTORY,
}
_ITEM_ERROR_ACTIONS = {
    "ITEM_LOGIN_REQUIRED": WebhookAction.MARK_DISCONNECTED,
    "ITEM_NOT_FOUND": WebhookAction.MARK_DISCONNECTED,
    "ACCESS_NOT_GRANTED": WebhookAction.MARK_DISCONNECTED,
}
_ITEM_ACTIONS = {
    "USER_PERMISSION_REVOKED": WebhookAction.MARK_DISCONNECTED,
    "USER_ACCOUNT_REVOKED": WebhookAction.MARK_DISCONNECTED,
    # Sent days ahead of the disconnect while the credentials still work
    "PENDING_DISCONNECT": WebhookAction.IGNORE,
}


class PlaidWebhookVerifier(WebhookVerifier):
    kind = ProviderKind.PLAID

    def __init__(
        self,
        key_source: KeySource,
        clock: Optional[Clock] = None,
        max_age_seconds: int = MAX_TOKEN_AGE_SECONDS,
    ):
        self._key_source = key_source
        self._clock = clock or Clock()
        self._max_age = max_age_seconds
        self._keys: dict[str, dict[str, Any]] = {}

    async def verify(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        token = header(headers, "Plaid-Verification")
        if not token:
            raise self._reject("missing Plaid-Verification header")

        try:
            unverified = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise self._reject(f"malformed token: {e}") from e
        if unverified.get("alg") != "ES256":
            raise self._reject("unexpected signing algorithm")
        key_id = unverified.get("kid")
        if not key_id:
            raise self._reject("token has no key id")

        jwk = await self._signing_key(key_id)
        if not jwk or jwk.get("expired_at"):
            raise self._reject("signing key unknown or expired")

        try:
            public_key = jwt.PyJWK(jwk, algorithm="ES256").key
            claims = jwt.decode(
                token,
                key=public_key,
                algorithms=["ES256"],
                options={"require": ["iat"], "verify_iat": False},
            )
        except jwt.PyJWTError as e:
            raise self._reject(f"invalid signature: {e}") from e

        age = self._clock.now().timestamp() - float(claims["iat"])
        if age > self._max_age:
            raise self._reject("token is too old")

        digest = hashlib.sha256(body).hexdigest()
        if not hmac.compare_digest(str(claims.get("request_body_sha256", "")), digest):
            raise self._reject("body digest mismatch")

        return self._to_event(body)

    async def _signing_key(self, key_id: str) -> dict[str, Any]:
        cached = self._keys.get(key_id)
        if cached is not None:
            return cached
        key = await self._key_source(key_id)
        if key:
            self._keys[key_id] = key
        return key

    def _to_event(self, body: bytes) -> WebhookEvent:
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise self._reject("body is not JSON") from e
        if not isinstance(payload, dict):
            raise self._reject("body is not a JSON object")

        webhook_type = str(payload.get("webhook_type") or "")
        code = str(payload.get("webhook_code") or "")
        action = WebhookAction.IGNORE
        if webhook_type == "TRANSACTIONS":
            action = _TRANSACTION_ACTIONS.get(code, WebhookAction.IGNORE)
        elif webhook_type == "ITEM":
            if code == "ERROR":
                error = payload.get("error")
                error_code = error.get("error_code") if isinstance(error, dict) else None
                action = _ITEM_ERROR_ACTIONS.get(error_code, WebhookAction.IGNORE)
            else:
                action = _ITEM_ACTIONS.get(code, WebhookAction.IGNORE)

        return WebhookEvent(
            provider=self.kind,
            action=action,
            code=f"{webhook_type}.{code}",
            provider_reference=payload.get("item_id"),
        )

    def _reject(self, reason: str) -> WebhookAuthenticationError:
        logger.warning("Rejected Plaid webhook: %s", reason)
        return WebhookAuthenticationError(self.kind.value, reason)
