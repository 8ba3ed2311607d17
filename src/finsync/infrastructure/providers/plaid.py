"""Plaid adapter.

Auth: client id and secret in every JSON body, plus the item's access
token. Transactions are read from ``/transactions/get`` with offset
pagination. Plaid reports outflows as positive amounts; the normalization
engine flips the sign.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from finsync.domain.banking.exceptions import (
    ProviderDisconnectedError,
    ProviderRateLimitedError,
    ProviderTransientError,
    ProviderUnknownError,
)
from finsync.domain.banking.value_objects import (
    Account,
    Connection,
    ProviderKind,
    RawAccount,
    RawTransaction,
    TransactionPage,
)
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.domain.shared.time import Clock
from finsync.infrastructure.providers.http_base import (
    HttpProviderAdapter,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

PLAID_PAGE_SIZE = 500

_DISCONNECTED_CODES = frozenset(
    {
        "ITEM_LOGIN_REQUIRED",
        "ITEM_LOCKED",
        "ITEM_NOT_FOUND",
        "INVALID_ACCESS_TOKEN",
        "ACCESS_NOT_GRANTED",
        "USER_PERMISSION_REVOKED",
        "NO_ACCOUNTS",
    },
)
_TRANSIENT_CODES = frozenset(
    {
        "PRODUCT_NOT_READY",
        "INTERNAL_SERVER_ERROR",
        "PLANNED_MAINTENANCE",
        "INSTITUTION_DOWN",
        "INSTITUTION_NOT_RESPONDING",
        "INSTITUTION_NOT_AVAILABLE",
    },
)
_CONFIGURATION_CODES = frozenset(
    {"INVALID_API_KEYS", "UNAUTHORIZED_ENVIRONMENT", "INVALID_PRODUCT"},
)


class PlaidAdapter(HttpProviderAdapter):
    kind = ProviderKind.PLAID

    def __init__(  # noqa: PLR0913
        self,
        client_id: str,
        secret: str,
        base_url: str = "https://sandbox.plaid.com",
        timeout: float = 30.0,
        latest_days: int = 30,
        full_history_days: int = 730,
        page_size: int = PLAID_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            latest_days=latest_days,
            full_history_days=full_history_days,
            transport=transport,
            clock=clock,
        )
        if not client_id or not secret:
            msg = "Plaid client id and secret must be configured"
            raise ConfigurationError(msg)
        self._client_id = client_id
        self._secret = secret
        self._page_size = page_size

    def _credentials(self) -> dict[str, Any]:
        return {"client_id": self._client_id, "secret": self._secret}

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, json={**self._credentials(), **payload})

    async def fetch_accounts(self, connection: Connection) -> list[RawAccount]:
        data = await self._post(
            "/accounts/get",
            {"access_token": connection.credential_ref},
        )
        accounts = []
        for item in data.get("accounts", []):
            balances = item.get("balances") or {}
            accounts.append(
                RawAccount(
                    provider=self.kind,
                    external_id=item.get("account_id"),
                    name=item.get("official_name") or item.get("name"),
                    currency=(
                        balances.get("iso_currency_code")
                        or balances.get("unofficial_currency_code")
                    ),
                    balance=balances.get("current"),
                    account_type=item.get("type"),
                    account_subtype=item.get("subtype"),
                ),
            )
        return accounts

    async def fetch_transactions(
        self,
        connection: Connection,
        account: Account,
        cursor: Optional[str] = None,
        *,
        full_history: bool = False,
    ) -> TransactionPage:
        offset = int(cursor) if cursor else 0
        data = await self._post(
            "/transactions/get",
            {
                "access_token": connection.credential_ref,
                "start_date": self.lookback_start(full_history).isoformat(),
                "end_date": self._clock.now().date().isoformat(),
                "options": {
                    "account_ids": [account.external_id],
                    "count": self._page_size,
                    "offset": offset,
                },
            },
        )

        transactions = data.get("transactions", [])
        records = [self._to_raw_transaction(item) for item in transactions]

        total = int(data.get("total_transactions", 0))
        next_offset = offset + len(transactions)
        next_cursor = str(next_offset) if transactions and next_offset < total else None
        return TransactionPage(records=records, next_cursor=next_cursor)

    def _to_raw_transaction(self, item: dict[str, Any]) -> RawTransaction:
        pfc = item.get("personal_finance_category") or {}
        return RawTransaction(
            provider=self.kind,
            external_id=item.get("transaction_id"),
            account_external_id=item.get("account_id"),
            amount=item.get("amount"),
            currency=item.get("iso_currency_code") or item.get("unofficial_currency_code"),
            booked_on=item.get("date"),
            description=item.get("name") or item.get("original_description"),
            counterparty_name=item.get("merchant_name"),
            pending=bool(item.get("pending", False)),
            provider_category=pfc.get("detailed") or pfc.get("primary"),
        )

    async def get_webhook_verification_key(self, key_id: str) -> dict[str, Any]:
        """Fetch the JWK Plaid signs webhooks with."""
        data = await self._post("/webhook_verification_key/get", {"key_id": key_id})
        return data.get("key") or {}

    async def _probe(self) -> None:
        await self._post(
            "/institutions/get",
            {"count": 1, "offset": 0, "country_codes": ["US"]},
        )

    def _raise_for_error(self, response: httpx.Response, body: dict) -> None:
        error_type = str(body.get("error_type") or "")
        error_code = str(body.get("error_code") or "")
        message = body.get("error_message") or f"Plaid error {error_code or response.status_code}"
        provider = self.kind.value

        if error_code in _DISCONNECTED_CODES:
            raise ProviderDisconnectedError(
                message,
                provider=provider,
                provider_code=error_code,
            )
        if error_type == "RATE_LIMIT_EXCEEDED" or response.status_code == 429:  # noqa: PLR2004
            raise ProviderRateLimitedError(
                message,
                provider=provider,
                provider_code=error_code or "RATE_LIMIT_EXCEEDED",
                retry_after=parse_retry_after(
                    response.headers.get("Retry-After"),
                    self._clock,
                ),
            )
        if (
            error_code in _TRANSIENT_CODES
            or error_type in {"INSTITUTION_ERROR", "API_ERROR"}
            or response.status_code >= 500  # noqa: PLR2004
        ):
            raise ProviderTransientError(
                message,
                provider=provider,
                provider_code=error_code or str(response.status_code),
            )
        if error_code in _CONFIGURATION_CODES:
            raise ConfigurationError(
                f"Plaid rejected the client configuration: {message}",
                details={"provider": provider, "provider_code": error_code},
            )
        raise ProviderUnknownError(
            message,
            provider=provider,
            provider_code=error_code or str(response.status_code),
        )
