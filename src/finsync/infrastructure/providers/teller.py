"""Teller adapter.

Auth: HTTP basic with the enrollment's access token as username, over a
mutual-TLS client certificate in development/production. Transactions are
returned newest first and paginated by ``from_id``.
"""

from __future__ import annotations

import logging
import ssl
from datetime import date
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
from finsync.domain.shared.time import Clock
from finsync.infrastructure.providers.http_base import (
    HttpProviderAdapter,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

TELLER_PAGE_SIZE = 250


class TellerAdapter(HttpProviderAdapter):
    kind = ProviderKind.TELLER

    def __init__(  # noqa: PLR0913
        self,
        base_url: str = "https://api.teller.io",
        certificate_path: Optional[str] = None,
        private_key_path: Optional[str] = None,
        timeout: float = 30.0,
        latest_days: int = 30,
        full_history_days: int = 730,
        page_size: int = TELLER_PAGE_SIZE,
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
        self._certificate_path = certificate_path
        self._private_key_path = private_key_path
        self._page_size = page_size

    def _client_options(self) -> dict[str, Any]:
        if not self._certificate_path:
            return {}
        context = ssl.create_default_context()
        context.load_cert_chain(self._certificate_path, self._private_key_path)
        return {"verify": context}

    @staticmethod
    def _auth(connection: Connection) -> httpx.BasicAuth:
        return httpx.BasicAuth(connection.credential_ref, "")

    async def fetch_accounts(self, connection: Connection) -> list[RawAccount]:
        auth = self._auth(connection)
        items = await self._request("GET", "/accounts", auth=auth)
        accounts = []
        for item in items or []:
            balance = None
            if item.get("status", "open") == "open":
                balances = await self._request(
                    "GET",
                    f"/accounts/{item['id']}/balances",
                    auth=auth,
                )
                balance = balances.get("ledger") or balances.get("available")
            accounts.append(
                RawAccount(
                    provider=self.kind,
                    external_id=item.get("id"),
                    name=item.get("name"),
                    currency=item.get("currency"),
                    balance=balance,
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
        params: dict[str, Any] = {"count": self._page_size}
        if cursor:
            params["from_id"] = cursor
        items = await self._request(
            "GET",
            f"/accounts/{account.external_id}/transactions",
            params=params,
            auth=self._auth(connection),
        )
        items = items or []

        start = self.lookback_start(full_history)
        records = []
        reached_start = False
        for item in items:
            if _is_before(item.get("date"), start):
                reached_start = True
                continue
            records.append(self._to_raw_transaction(item))

        next_cursor = None
        if len(items) >= self._page_size and not reached_start:
            next_cursor = items[-1].get("id")
        return TransactionPage(records=records, next_cursor=next_cursor)

    def _to_raw_transaction(self, item: dict[str, Any]) -> RawTransaction:
        details = item.get("details") or {}
        counterparty = details.get("counterparty") or {}
        return RawTransaction(
            provider=self.kind,
            external_id=item.get("id"),
            account_external_id=item.get("account_id"),
            amount=item.get("amount"),
            booked_on=item.get("date"),
            description=item.get("description"),
            counterparty_name=counterparty.get("name"),
            pending=item.get("status") == "pending",
            provider_category=details.get("category"),
        )

    async def _probe(self) -> None:
        response = await self._send("GET", "/")
        if response.status_code >= 500:  # noqa: PLR2004
            raise self._generic_error(response)

    def _raise_for_error(self, response: httpx.Response, body: dict) -> None:
        error = body.get("error") or {}
        code = str(error.get("code") or "")
        message = error.get("message") or f"Teller error {response.status_code}"
        provider = self.kind.value
        status = response.status_code

        if code.startswith("enrollment.disconnected") or status == 401:  # noqa: PLR2004
            raise ProviderDisconnectedError(
                message,
                provider=provider,
                provider_code=code or str(status),
            )
        if status == 429:  # noqa: PLR2004
            raise ProviderRateLimitedError(
                message,
                provider=provider,
                provider_code=code or str(status),
                retry_after=parse_retry_after(
                    response.headers.get("Retry-After"),
                    self._clock,
                ),
            )
        if status >= 500:  # noqa: PLR2004
            raise ProviderTransientError(
                message,
                provider=provider,
                provider_code=code or str(status),
            )
        raise ProviderUnknownError(message, provider=provider, provider_code=code or str(status))


def _is_before(value: Any, start: date) -> bool:
    if not isinstance(value, str):
        return False
    try:
        return date.fromisoformat(value[:10]) < start
    except ValueError:
        # Let normalization reject it with a proper reason
        return False
