"""Enable Banking adapter.

Auth: every request carries an RS256 JWT signed with the application's
private key (``kid`` = application id). The connection's credential
reference is the authorized session id. Amounts are absolute and come
with a ``credit_debit_indicator``; pagination uses a continuation key.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx
import jwt

from finsync.domain.banking.exceptions import (
    ProviderDisconnectedError,
    ProviderRateLimitedError,
    ProviderTransientError,
    ProviderUnknownError,
)
from finsync.domain.banking.value_objects import (
    Account,
    Connection,
    CreditDebit,
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

JWT_LIFETIME_SECONDS = 3600
JWT_REFRESH_MARGIN_SECONDS = 300

_DIRECTIONS = {"CRDT": CreditDebit.CREDIT, "DBIT": CreditDebit.DEBIT}
_BALANCE_PREFERENCE = ("CLBD", "ITBD", "XPCD", "ITAV", "CLAV")
_EXPIRED_ERRORS = frozenset({"EXPIRED_SESSION"})
_DISCONNECTED_ERRORS = frozenset(
    {"CLOSED_SESSION", "REVOKED_SESSION", "SESSION_DOES_NOT_EXIST", "ACCOUNT_DOES_NOT_EXIST"},
)
_TRANSIENT_ERRORS = frozenset({"ASPSP_ERROR", "ASPSP_TIMEOUT"})
_RATE_LIMIT_ERRORS = frozenset({"ASPSP_RATE_LIMIT_EXCEEDED", "TOO_MANY_REQUESTS"})


class EnableBankingAdapter(HttpProviderAdapter):
    kind = ProviderKind.ENABLEBANKING

    def __init__(  # noqa: PLR0913
        self,
        application_id: str,
        private_key: Optional[str] = None,
        private_key_path: Optional[str] = None,
        base_url: str = "https://api.enablebanking.com",
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
        if not application_id:
            msg = "Enable Banking application id must be configured"
            raise ConfigurationError(msg)
        if private_key is None and private_key_path:
            try:
                private_key = Path(private_key_path).read_text()
            except OSError as e:
                msg = f"Cannot read Enable Banking private key: {e}"
                raise ConfigurationError(msg) from e
        if not private_key:
            msg = "Enable Banking private key must be configured"
            raise ConfigurationError(msg)
        self._application_id = application_id
        self._private_key = private_key
        self._jwt: Optional[str] = None
        self._jwt_expires_at = 0

    def _auth_token(self) -> str:
        now = int(self._clock.now().timestamp())
        if self._jwt and now < self._jwt_expires_at - JWT_REFRESH_MARGIN_SECONDS:
            return self._jwt
        payload = {
            "iss": "enablebanking.com",
            "aud": "api.enablebanking.com",
            "iat": now,
            "exp": now + JWT_LIFETIME_SECONDS,
        }
        try:
            token = jwt.encode(
                payload,
                self._private_key,
                algorithm="RS256",
                headers={"kid": self._application_id},
            )
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            msg = f"Cannot sign Enable Banking request token: {e}"
            raise ConfigurationError(msg) from e
        self._jwt = token
        self._jwt_expires_at = now + JWT_LIFETIME_SECONDS
        return token

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self._request(
            "GET",
            path,
            params=params,
            headers={"Authorization": f"Bearer {self._auth_token()}"},
        )

    async def fetch_accounts(self, connection: Connection) -> list[RawAccount]:
        session = await self._get(f"/sessions/{connection.credential_ref}")
        status = str(session.get("status") or "")
        if status == "EXPIRED":
            raise ProviderDisconnectedError(
                "Enable Banking session has expired",
                provider=self.kind.value,
                provider_code=status,
                expired=True,
            )
        if status in {"CLOSED", "REVOKED", "INVALID"}:
            raise ProviderDisconnectedError(
                f"Enable Banking session is {status.lower()}",
                provider=self.kind.value,
                provider_code=status,
            )

        accounts = []
        for uid in session.get("accounts", []):
            details = await self._get(f"/accounts/{uid}/details")
            balances = await self._get(f"/accounts/{uid}/balances")
            balance = _pick_balance(balances.get("balances") or [])
            accounts.append(
                RawAccount(
                    provider=self.kind,
                    external_id=uid,
                    name=details.get("name") or details.get("product"),
                    currency=details.get("currency") or (balance or {}).get("currency"),
                    balance=(balance or {}).get("amount"),
                    account_type=details.get("cash_account_type"),
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
        params: dict[str, Any] = {
            "date_from": self.lookback_start(full_history).isoformat(),
        }
        if cursor:
            params["continuation_key"] = cursor
        data = await self._get(f"/accounts/{account.external_id}/transactions", params)
        records = [
            self._to_raw_transaction(item, account.external_id)
            for item in data.get("transactions", [])
        ]
        return TransactionPage(
            records=records,
            next_cursor=data.get("continuation_key") or None,
        )

    def _to_raw_transaction(self, item: dict[str, Any], account_external_id: str) -> RawTransaction:
        amount = item.get("transaction_amount") or {}
        direction = _DIRECTIONS.get(str(item.get("credit_debit_indicator") or "").upper())
        party = item.get("debtor") if direction == CreditDebit.CREDIT else item.get("creditor")
        remittance = item.get("remittance_information") or []
        code = item.get("bank_transaction_code") or {}

        return RawTransaction(
            provider=self.kind,
            external_id=item.get("transaction_id") or item.get("entry_reference"),
            account_external_id=account_external_id,
            amount=amount.get("amount"),
            currency=amount.get("currency"),
            booked_on=item.get("booking_date") or item.get("value_date"),
            description=" ".join(remittance) if isinstance(remittance, list) else remittance,
            counterparty_name=(party or {}).get("name"),
            pending=item.get("status") == "PDNG",
            direction=direction,
            provider_category=_transaction_code(code),
        )

    async def _probe(self) -> None:
        await self._get("/application")

    def _raise_for_error(self, response: httpx.Response, body: dict) -> None:
        status = response.status_code
        error = str(body.get("error") or "")
        message = str(body.get("message") or f"Enable Banking error {status}")
        provider = self.kind.value

        if error in _EXPIRED_ERRORS:
            raise ProviderDisconnectedError(
                message,
                provider=provider,
                provider_code=error,
                expired=True,
            )
        if error in _DISCONNECTED_ERRORS:
            raise ProviderDisconnectedError(message, provider=provider, provider_code=error)
        if error in _RATE_LIMIT_ERRORS or status == 429:  # noqa: PLR2004
            raise ProviderRateLimitedError(
                message,
                provider=provider,
                provider_code=error or str(status),
                retry_after=parse_retry_after(
                    response.headers.get("Retry-After"),
                    self._clock,
                ),
            )
        if error in _TRANSIENT_ERRORS or status >= 500:  # noqa: PLR2004
            raise ProviderTransientError(message, provider=provider, provider_code=error or str(status))
        if status == 401:  # noqa: PLR2004
            raise ConfigurationError(
                f"Enable Banking rejected the application credentials: {message}",
                details={"provider": provider, "provider_code": error},
            )
        raise ProviderUnknownError(message, provider=provider, provider_code=error or str(status))


def _transaction_code(code: dict[str, Any]) -> Optional[str]:
    """ISO 20022 domain-family-subfamily, e.g. ``PMNT-RCDT-ESCT``."""
    parts = [code.get("code"), code.get("sub_code")]
    joined = "-".join(str(p) for p in parts if p)
    return joined or None


def _pick_balance(balances: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    by_type = {b.get("balance_type"): b.get("balance_amount") or {} for b in balances}
    for balance_type in _BALANCE_PREFERENCE:
        if balance_type in by_type:
            return by_type[balance_type]
    if balances:
        return balances[0].get("balance_amount") or {}
    return None
