"""Tests for the Plaid adapter against a mocked HTTP API."""

import json
from decimal import Decimal

import httpx
import pytest

from finsync.domain.banking.exceptions import (
    ProviderDisconnectedError,
    ProviderRateLimitedError,
    ProviderTransientError,
    ProviderUnknownError,
)
from finsync.domain.banking.value_objects import ProviderKind
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.infrastructure.providers.plaid import PlaidAdapter

from tests.shared.fixtures.clock import FakeClock
from tests.shared.fixtures.factories import make_account, make_connection


def _adapter(handler, page_size: int = 500) -> PlaidAdapter:
    return PlaidAdapter(
        client_id="client",
        secret="secret",
        base_url="https://plaid.test",
        page_size=page_size,
        transport=httpx.MockTransport(handler),
        clock=FakeClock(),
    )


def _plaid_tx(tx_id: str, amount: float = 12.5) -> dict:
    return {
        "transaction_id": tx_id,
        "account_id": "acc_1",
        "amount": amount,
        "iso_currency_code": "USD",
        "date": "2024-02-20",
        "name": "COFFEE SHOP",
        "merchant_name": "Coffee Shop",
        "pending": False,
        "personal_finance_category": {
            "primary": "FOOD_AND_DRINK",
            "detailed": "FOOD_AND_DRINK_COFFEE",
        },
    }


def _error(status: int, error_type: str, error_code: str) -> httpx.Response:
    return httpx.Response(
        status,
        json={
            "error_type": error_type,
            "error_code": error_code,
            "error_message": f"{error_code} happened",
        },
    )


class TestConstruction:
    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            PlaidAdapter(client_id="", secret="secret")


class TestFetchAccounts:
    @pytest.mark.asyncio
    async def test_maps_accounts_and_sends_credentials(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "accounts": [
                        {
                            "account_id": "acc_1",
                            "name": "Plaid Checking",
                            "official_name": "Plaid Gold Standard Checking",
                            "type": "depository",
                            "subtype": "checking",
                            "balances": {"current": 110.25, "iso_currency_code": "USD"},
                        },
                    ],
                },
            )

        [account] = await _adapter(handler).fetch_accounts(
            make_connection(provider=ProviderKind.PLAID, reference="item_1"),
        )

        assert account.name == "Plaid Gold Standard Checking"
        assert account.currency == "USD"
        assert account.balance == Decimal("110.25")
        assert bodies == [
            {"client_id": "client", "secret": "secret", "access_token": "token_item_1"},
        ]


class TestFetchTransactions:
    @pytest.mark.asyncio
    async def test_offset_pagination(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            offset = body["options"]["offset"]
            return httpx.Response(
                200,
                json={
                    "transactions": [_plaid_tx(f"tx_{offset}"), _plaid_tx(f"tx_{offset + 1}")],
                    "total_transactions": 3,
                },
            )

        connection = make_connection(provider=ProviderKind.PLAID)
        adapter = _adapter(handler, page_size=2)
        account = make_account(connection)

        first = await adapter.fetch_transactions(connection, account)
        second = await adapter.fetch_transactions(connection, account, cursor=first.next_cursor)

        assert first.next_cursor == "2"
        assert second.next_cursor is None
        assert bodies[0]["options"] == {"account_ids": ["acc_1"], "count": 2, "offset": 0}
        assert bodies[0]["start_date"] == "2024-01-31"
        assert bodies[0]["end_date"] == "2024-03-01"

    @pytest.mark.asyncio
    async def test_amounts_are_passed_through_unsigned(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"transactions": [_plaid_tx("tx_1", 12.5)], "total_transactions": 1},
            )

        connection = make_connection(provider=ProviderKind.PLAID)
        page = await _adapter(handler).fetch_transactions(connection, make_account(connection))

        [record] = page.records
        assert record.amount == Decimal("12.5")
        assert record.provider == ProviderKind.PLAID
        assert record.provider_category == "FOOD_AND_DRINK_COFFEE"
        assert record.counterparty_name == "Coffee Shop"

    @pytest.mark.asyncio
    async def test_full_history_uses_the_long_lookback(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"transactions": [], "total_transactions": 0})

        connection = make_connection(provider=ProviderKind.PLAID)
        page = await _adapter(handler).fetch_transactions(
            connection,
            make_account(connection),
            full_history=True,
        )

        assert page.records == []
        assert not page.has_more
        assert bodies[0]["start_date"] == "2022-03-02"


class TestErrorMapping:
    async def _fetch(self, response: httpx.Response):
        connection = make_connection(provider=ProviderKind.PLAID)
        adapter = _adapter(lambda request: response)
        return await adapter.fetch_accounts(connection)

    @pytest.mark.asyncio
    async def test_login_required_is_a_disconnect(self):
        with pytest.raises(ProviderDisconnectedError) as exc_info:
            await self._fetch(_error(400, "ITEM_ERROR", "ITEM_LOGIN_REQUIRED"))

        assert exc_info.value.provider_code == "ITEM_LOGIN_REQUIRED"
        assert exc_info.value.provider == "plaid"

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        with pytest.raises(ProviderRateLimitedError):
            await self._fetch(_error(429, "RATE_LIMIT_EXCEEDED", "TRANSACTIONS_LIMIT"))

    @pytest.mark.parametrize(
        "make_response",
        [
            lambda: _error(400, "INSTITUTION_ERROR", "INSTITUTION_DOWN"),
            lambda: _error(500, "API_ERROR", "INTERNAL_SERVER_ERROR"),
            lambda: httpx.Response(503, text="unavailable"),
        ],
    )
    @pytest.mark.asyncio
    async def test_outages_are_transient(self, make_response):
        with pytest.raises(ProviderTransientError):
            await self._fetch(make_response())

    @pytest.mark.asyncio
    async def test_bad_keys_are_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            await self._fetch(_error(400, "INVALID_INPUT", "INVALID_API_KEYS"))

    @pytest.mark.asyncio
    async def test_anything_else_is_unknown(self):
        with pytest.raises(ProviderUnknownError):
            await self._fetch(_error(400, "INVALID_REQUEST", "MISSING_FIELDS"))


class TestWebhookVerificationKey:
    @pytest.mark.asyncio
    async def test_returns_the_jwk(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/webhook_verification_key/get"
            assert json.loads(request.content)["key_id"] == "kid-1"
            return httpx.Response(200, json={"key": {"kid": "kid-1", "kty": "EC"}})

        key = await _adapter(handler).get_webhook_verification_key("kid-1")

        assert key == {"kid": "kid-1", "kty": "EC"}
