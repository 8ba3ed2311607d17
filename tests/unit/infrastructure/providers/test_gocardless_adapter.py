"""Tests for the GoCardless adapter against a mocked HTTP API."""

from decimal import Decimal

import httpx
import pytest

from finsync.domain.banking.exceptions import (
    ProviderDisconnectedError,
    ProviderTransientError,
)
from finsync.domain.banking.value_objects import ProviderKind
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.infrastructure.providers.gocardless import GoCardlessAdapter

from tests.shared.fixtures.clock import FakeClock
from tests.shared.fixtures.factories import make_account, make_connection

TOKEN_PATH = "/api/v2/token/new/"


class FakeGoCardless:
    """Routes requests by path and counts token exchanges."""

    def __init__(self, routes: dict, token_lifetime: int = 86400):
        self.routes = routes
        self.token_lifetime = token_lifetime
        self.token_requests = 0
        self.authorizations = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == TOKEN_PATH:
            self.token_requests += 1
            return httpx.Response(
                200,
                json={
                    "access": f"token-{self.token_requests}",
                    "access_expires": self.token_lifetime,
                },
            )
        self.authorizations.append(request.headers.get("Authorization"))
        route = self.routes[request.url.path]
        if isinstance(route, list):
            return route.pop(0)
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)


def _adapter(handler, clock=None) -> GoCardlessAdapter:
    return GoCardlessAdapter(
        secret_id="id",
        secret_key="key",
        base_url="https://gocardless.test",
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


def _connection():
    return make_connection(provider=ProviderKind.GOCARDLESS, reference="req_1")


def _requisition(status: str = "LN") -> httpx.Response:
    return httpx.Response(200, json={"id": "token_req_1", "status": status, "accounts": ["acc_1"]})


class TestConstruction:
    def test_requires_secrets(self):
        with pytest.raises(ConfigurationError):
            GoCardlessAdapter(secret_id="id", secret_key="")


class TestTokenHandling:
    @pytest.mark.asyncio
    async def test_token_is_reused_until_it_expires(self):
        clock = FakeClock()
        api = FakeGoCardless(
            {"/api/v2/requisitions/token_req_1/": _requisition("EX")},
            token_lifetime=600,
        )
        adapter = _adapter(api, clock)

        for _ in range(2):
            with pytest.raises(ProviderDisconnectedError):
                await adapter.fetch_accounts(_connection())
        assert api.token_requests == 1

        clock.advance(600)
        with pytest.raises(ProviderDisconnectedError):
            await adapter.fetch_accounts(_connection())
        assert api.token_requests == 2

    @pytest.mark.asyncio
    async def test_unauthorized_call_refreshes_the_token_once(self):
        api = FakeGoCardless(
            {
                "/api/v2/accounts/acc_1/transactions/": [
                    httpx.Response(401, json={"summary": "Invalid token"}),
                    httpx.Response(200, json={"transactions": {"booked": [], "pending": []}}),
                ],
            },
        )
        connection = _connection()

        page = await _adapter(api).fetch_transactions(connection, make_account(connection))

        assert page.records == []
        assert api.token_requests == 2
        assert api.authorizations == ["Bearer token-1", "Bearer token-2"]

    @pytest.mark.asyncio
    async def test_rejected_secrets_are_a_configuration_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"summary": "Authentication failed"})

        with pytest.raises(ConfigurationError):
            await _adapter(handler).fetch_accounts(_connection())


class TestRequisitionStatus:
    @pytest.mark.asyncio
    async def test_expired_agreement(self):
        api = FakeGoCardless({"/api/v2/requisitions/token_req_1/": _requisition("EX")})

        with pytest.raises(ProviderDisconnectedError) as exc_info:
            await _adapter(api).fetch_accounts(_connection())

        assert exc_info.value.expired is True

    @pytest.mark.asyncio
    async def test_rejected_requisition(self):
        api = FakeGoCardless({"/api/v2/requisitions/token_req_1/": _requisition("RJ")})

        with pytest.raises(ProviderDisconnectedError) as exc_info:
            await _adapter(api).fetch_accounts(_connection())

        assert exc_info.value.expired is False


class TestFetchAccounts:
    @pytest.mark.asyncio
    async def test_prefers_booked_balances(self):
        api = FakeGoCardless(
            {
                "/api/v2/requisitions/token_req_1/": _requisition(),
                "/api/v2/accounts/acc_1/details/": httpx.Response(
                    200,
                    json={"account": {"name": "Girokonto", "currency": "EUR"}},
                ),
                "/api/v2/accounts/acc_1/balances/": httpx.Response(
                    200,
                    json={
                        "balances": [
                            {
                                "balanceType": "interimAvailable",
                                "balanceAmount": {"amount": "90.00", "currency": "EUR"},
                            },
                            {
                                "balanceType": "closingBooked",
                                "balanceAmount": {"amount": "100.00", "currency": "EUR"},
                            },
                        ],
                    },
                ),
            },
        )

        [account] = await _adapter(api).fetch_accounts(_connection())

        assert account.external_id == "acc_1"
        assert account.name == "Girokonto"
        assert account.currency == "EUR"
        assert account.balance == "100.00"


class TestFetchTransactions:
    @pytest.mark.asyncio
    async def test_booked_and_pending_groups(self):
        api = FakeGoCardless(
            {
                "/api/v2/accounts/acc_1/transactions/": httpx.Response(
                    200,
                    json={
                        "transactions": {
                            "booked": [
                                {
                                    "transactionId": "b1",
                                    "bookingDate": "2024-02-27",
                                    "transactionAmount": {"amount": "-25.00", "currency": "EUR"},
                                    "creditorName": "Supermarkt",
                                    "remittanceInformationUnstructuredArray": ["Einkauf", "Filiale 12"],
                                },
                            ],
                            "pending": [
                                {
                                    "internalTransactionId": "p1",
                                    "valueDate": "2024-02-29",
                                    "transactionAmount": {"amount": "1200.00", "currency": "EUR"},
                                    "debtorName": "Arbeitgeber GmbH",
                                },
                            ],
                        },
                    },
                ),
            },
        )
        connection = _connection()

        page = await _adapter(api).fetch_transactions(
            connection,
            make_account(connection, currency="EUR"),
        )

        booked, pending = page.records
        assert (booked.external_id, booked.pending) == ("b1", False)
        assert booked.description == "Einkauf Filiale 12"
        assert booked.counterparty_name == "Supermarkt"
        assert (pending.external_id, pending.pending) == ("p1", True)
        assert pending.booked_on == "2024-02-29"
        assert pending.counterparty_name == "Arbeitgeber GmbH"
        assert Decimal(pending.amount) == Decimal("1200.00")
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_processing_account_is_transient(self):
        api = FakeGoCardless(
            {
                "/api/v2/accounts/acc_1/transactions/": httpx.Response(
                    409,
                    json={"summary": "Account is being processed"},
                ),
            },
        )
        connection = _connection()

        with pytest.raises(ProviderTransientError):
            await _adapter(api).fetch_transactions(connection, make_account(connection))
