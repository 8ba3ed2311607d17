"""GoCardless Bank Account Data adapter.

Auth: secret id/key exchanged for a short-lived bearer token, cached and
refreshed on expiry or on a 401. The connection's credential reference is
the requisition id. Transactions come back in a single response split into
``booked`` and ``pending``.
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

# Refresh a little before the advertised expiry
TOKEN_EXPIRY_MARGIN_SECONDS = 60.0

_BALANCE_PREFERENCE = (
    "closingBooked",
    "interimBooked",
    "expected",
    "interimAvailable",
)

# Requisition statuses: LN linked, EX expired, RJ rejected, others in progress
_REQUISITION_LINKED = "LN"
_REQUISITION_EXPIRED = "EX"
_REQUISITION_REJECTED = "RJ"


class GoCardlessAdapter(HttpProviderAdapter):
    kind = ProviderKind.GOCARDLESS

    def __init__(  # noqa: PLR0913
        self,
        secret_id: str,
        secret_key: str,
        base_url: str = "https://bankaccountdata.gocardless.com",
        timeout: float = 30.0,
        latest_days: int = 30,
        full_history_days: int = 730,
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
        if not secret_id or not secret_key:
            msg = "GoCardless secret id and key must be configured"
            raise ConfigurationError(msg)
        self._secret_id = secret_id
        self._secret_key = secret_key
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    # -------------------------------------------------------------------------
    # Token handling
    # -------------------------------------------------------------------------

    async def _token(self, force_refresh: bool = False) -> str:
        if (
            not force_refresh
            and self._access_token
            and self._clock.monotonic() < self._token_expires_at
        ):
            return self._access_token

        response = await self._send(
            "POST",
            "/api/v2/token/new/",
            json={"secret_id": self._secret_id, "secret_key": self._secret_key},
        )
        if response.status_code in (401, 403):
            msg = "GoCardless rejected the configured secret id/key"
            raise ConfigurationError(msg, details={"provider": self.kind.value})
        data = self._decode(response, "POST", "/api/v2/token/new/")
        self._access_token = data["access"]
        lifetime = float(data.get("access_expires", 86400))
        self._token_expires_at = (
            self._clock.monotonic() + max(0.0, lifetime - TOKEN_EXPIRY_MARGIN_SECONDS)
        )
        logger.debug("Obtained GoCardless access token (valid %ss)", lifetime)
        return self._access_token

    async def _authorized(self, method: str, path: str, **kwargs: Any) -> Any:
        token = await self._token()
        response = await self._send(
            method,
            path,
            headers={"Authorization": f"Bearer {token}"},
            **kwargs,
        )
        if response.status_code == 401:  # noqa: PLR2004
            token = await self._token(force_refresh=True)
            response = await self._send(
                method,
                path,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        return self._decode(response, method, path)

    # -------------------------------------------------------------------------
    # ProviderAdapter
    # -------------------------------------------------------------------------

    async def fetch_accounts(self, connection: Connection) -> list[RawAccount]:
        requisition = await self._authorized(
            "GET",
            f"/api/v2/requisitions/{connection.credential_ref}/",
        )
        status = requisition.get("status")
        if status == _REQUISITION_EXPIRED:
            raise ProviderDisconnectedError(
                "GoCardless end-user agreement has expired",
                provider=self.kind.value,
                provider_code=status,
                expired=True,
            )
        if status == _REQUISITION_REJECTED:
            raise ProviderDisconnectedError(
                "GoCardless requisition was rejected",
                provider=self.kind.value,
                provider_code=status,
            )
        if status != _REQUISITION_LINKED:
            raise ProviderUnknownError(
                f"GoCardless requisition is not linked yet (status {status})",
                provider=self.kind.value,
                provider_code=status,
            )

        accounts = []
        for account_id in requisition.get("accounts", []):
            details = await self._authorized("GET", f"/api/v2/accounts/{account_id}/details/")
            balances = await self._authorized("GET", f"/api/v2/accounts/{account_id}/balances/")
            account = details.get("account") or {}
            balance = _pick_balance(balances.get("balances") or [])
            accounts.append(
                RawAccount(
                    provider=self.kind,
                    external_id=account_id,
                    name=account.get("name") or account.get("product") or account.get("ownerName"),
                    currency=account.get("currency") or (balance or {}).get("currency"),
                    balance=(balance or {}).get("amount"),
                    account_type=account.get("cashAccountType"),
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
        data = await self._authorized(
            "GET",
            f"/api/v2/accounts/{account.external_id}/transactions/",
            params={"date_from": self.lookback_start(full_history).isoformat()},
        )
        groups = data.get("transactions") or {}
        records = [
            self._to_raw_transaction(item, account.external_id, pending=False)
            for item in groups.get("booked", [])
        ]
        records.extend(
            self._to_raw_transaction(item, account.external_id, pending=True)
            for item in groups.get("pending", [])
        )
        return TransactionPage(records=records, next_cursor=None)

    def _to_raw_transaction(
        self,
        item: dict[str, Any],
        account_external_id: str,
        pending: bool,
    ) -> RawTransaction:
        amount = item.get("transactionAmount") or {}
        remittance = item.get("remittanceInformationUnstructured")
        if not remittance and item.get("remittanceInformationUnstructuredArray"):
            remittance = " ".join(item["remittanceInformationUnstructuredArray"])

        value = amount.get("amount")
        outgoing = isinstance(value, str) and value.strip().startswith("-")
        counterparty = item.get("creditorName") if outgoing else item.get("debtorName")

        return RawTransaction(
            provider=self.kind,
            external_id=item.get("transactionId") or item.get("internalTransactionId"),
            account_external_id=account_external_id,
            amount=value,
            currency=amount.get("currency"),
            booked_on=item.get("bookingDate") or item.get("valueDate"),
            description=remittance or item.get("additionalInformation"),
            counterparty_name=counterparty,
            pending=pending,
            provider_category=(
                item.get("bankTransactionCode")
                or item.get("proprietaryBankTransactionCode")
            ),
        )

    async def _probe(self) -> None:
        await self._token(force_refresh=True)

    def _raise_for_error(self, response: httpx.Response, body: dict) -> None:
        status = response.status_code
        summary = str(body.get("summary") or "")
        detail = str(body.get("detail") or "")
        error_type = str(body.get("type") or "")
        message = summary or detail or f"GoCardless error {status}"
        provider = self.kind.value
        text = f"{summary} {detail} {error_type}".lower()

        if "expired" in text and status in (400, 401, 403):
            raise ProviderDisconnectedError(
                message,
                provider=provider,
                provider_code=error_type or str(status),
                expired=True,
            )
        if status == 403:  # noqa: PLR2004
            raise ProviderDisconnectedError(
                message,
                provider=provider,
                provider_code=error_type or str(status),
            )
        if status == 429:  # noqa: PLR2004
            retry_after = parse_retry_after(
                response.headers.get("Retry-After")
                or response.headers.get("HTTP_X_RATELIMIT_ACCOUNT_SUCCESS_RESET"),
                self._clock,
            )
            raise ProviderRateLimitedError(
                message,
                provider=provider,
                provider_code=error_type or str(status),
                retry_after=retry_after,
            )
        # 409: the bank is still processing the account
        if status == 409 or status >= 500:  # noqa: PLR2004
            raise ProviderTransientError(
                message,
                provider=provider,
                provider_code=error_type or str(status),
            )
        raise ProviderUnknownError(
            message,
            provider=provider,
            provider_code=error_type or str(status),
        )


def _pick_balance(balances: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    by_type = {b.get("balanceType"): b.get("balanceAmount") or {} for b in balances}
    for balance_type in _BALANCE_PREFERENCE:
        if balance_type in by_type:
            return by_type[balance_type]
    if balances:
        return balances[0].get("balanceAmount") or {}
    return None
