"""Tests for the Enable Banking adapter against a mocked HTTP API."""

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from finsync.domain.banking.exceptions import ProviderDisconnectedError
from finsync.domain.banking.value_objects import CreditDebit, ProviderKind
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.infrastructure.providers.enablebanking import EnableBankingAdapter

from tests.shared.fixtures.clock import FakeClock
from tests.shared.fixtures.factories import make_account, make_connection

APPLICATION_ID = "app-123"


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def private_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def make_adapter(private_pem):
    def factory(handler) -> EnableBankingAdapter:
        return EnableBankingAdapter(
            application_id=APPLICATION_ID,
            private_key=private_pem,
            base_url="https://enablebanking.test",
            transport=httpx.MockTransport(handler),
            clock=FakeClock(),
        )

    return factory


def _connection():
    return make_connection(provider=ProviderKind.ENABLEBANKING, reference="sess_1")


class TestConstruction:
    def test_requires_application_id(self, private_pem):
        with pytest.raises(ConfigurationError):
            EnableBankingAdapter(application_id="", private_key=private_pem)

    def test_requires_a_private_key(self):
        with pytest.raises(ConfigurationError):
            EnableBankingAdapter(application_id=APPLICATION_ID)

    def test_unreadable_key_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            EnableBankingAdapter(
                application_id=APPLICATION_ID,
                private_key_path=str(tmp_path / "missing.pem"),
            )

    @pytest.mark.asyncio
    async def test_garbage_key_fails_on_first_request(self):
        adapter = EnableBankingAdapter(
            application_id=APPLICATION_ID,
            private_key="not a key",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )

        with pytest.raises(ConfigurationError):
            await adapter.fetch_accounts(_connection())


class TestRequestSigning:
    @pytest.mark.asyncio
    async def test_requests_carry_an_application_signed_jwt(self, make_adapter, rsa_key):
        tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            tokens.append(request.headers["Authorization"].removeprefix("Bearer "))
            return httpx.Response(200, json={"status": "AUTHORIZED", "accounts": []})

        adapter = make_adapter(handler)
        await adapter.fetch_accounts(_connection())
        await adapter.fetch_accounts(_connection())

        assert tokens[0] == tokens[1]
        assert jwt.get_unverified_header(tokens[0])["kid"] == APPLICATION_ID
        claims = jwt.decode(
            tokens[0],
            rsa_key.public_key(),
            algorithms=["RS256"],
            audience="api.enablebanking.com",
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims["iss"] == "enablebanking.com"
        assert claims["exp"] - claims["iat"] == 3600


class TestSessions:
    @pytest.mark.asyncio
    async def test_expired_session(self, make_adapter):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/sessions/token_sess_1"
            return httpx.Response(200, json={"status": "EXPIRED", "accounts": []})

        with pytest.raises(ProviderDisconnectedError) as exc_info:
            await make_adapter(handler).fetch_accounts(_connection())

        assert exc_info.value.expired is True

    @pytest.mark.asyncio
    async def test_revoked_session(self, make_adapter):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "REVOKED", "accounts": []})

        with pytest.raises(ProviderDisconnectedError) as exc_info:
            await make_adapter(handler).fetch_accounts(_connection())

        assert exc_info.value.expired is False

    @pytest.mark.asyncio
    async def test_accounts_with_balances(self, make_adapter):
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.startswith("/sessions/"):
                return httpx.Response(200, json={"status": "AUTHORIZED", "accounts": ["uid_1"]})
            if path.endswith("/details"):
                return httpx.Response(
                    200,
                    json={"name": "Käyttötili", "currency": "EUR", "cash_account_type": "CACC"},
                )
            return httpx.Response(
                200,
                json={
                    "balances": [
                        {"balance_type": "ITAV", "balance_amount": {"amount": "50.00", "currency": "EUR"}},
                        {"balance_type": "CLBD", "balance_amount": {"amount": "75.00", "currency": "EUR"}},
                    ],
                },
            )

        [account] = await make_adapter(handler).fetch_accounts(_connection())

        assert account.external_id == "uid_1"
        assert account.currency == "EUR"
        assert account.balance == "75.00"
        assert account.account_type == "CACC"


class TestFetchTransactions:
    @pytest.mark.asyncio
    async def test_direction_and_continuation_key(self, make_adapter):
        params = []

        def handler(request: httpx.Request) -> httpx.Response:
            params.append(dict(request.url.params))
            return httpx.Response(
                200,
                json={
                    "transactions": [
                        {
                            "entry_reference": "e1",
                            "transaction_amount": {"amount": "30.00", "currency": "EUR"},
                            "credit_debit_indicator": "DBIT",
                            "booking_date": "2024-02-26",
                            "creditor": {"name": "Kauppa"},
                            "remittance_information": ["Ostos"],
                            "status": "BOOK",
                            "bank_transaction_code": {"code": "PMNT", "sub_code": "ICDT"},
                        },
                        {
                            "transaction_id": "t2",
                            "transaction_amount": {"amount": "2000.00", "currency": "EUR"},
                            "credit_debit_indicator": "CRDT",
                            "value_date": "2024-02-29",
                            "debtor": {"name": "Employer Oy"},
                            "status": "PDNG",
                        },
                    ],
                    "continuation_key": "next-page",
                },
            )

        connection = _connection()
        page = await make_adapter(handler).fetch_transactions(
            connection,
            make_account(connection, external_id="uid_1", currency="EUR"),
            cursor="this-page",
        )

        debit, credit = page.records
        assert debit.direction == CreditDebit.DEBIT
        assert debit.counterparty_name == "Kauppa"
        assert debit.description == "Ostos"
        assert debit.provider_category == "PMNT-ICDT"
        assert debit.pending is False
        assert credit.direction == CreditDebit.CREDIT
        assert credit.counterparty_name == "Employer Oy"
        assert credit.booked_on == "2024-02-29"
        assert credit.pending is True
        assert page.next_cursor == "next-page"
        assert params[0] == {"date_from": "2024-01-31", "continuation_key": "this-page"}


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_expired_session_error(self, make_adapter):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "EXPIRED_SESSION", "message": "Session expired"})

        with pytest.raises(ProviderDisconnectedError) as exc_info:
            await make_adapter(handler).fetch_accounts(_connection())

        assert exc_info.value.expired is True

    @pytest.mark.asyncio
    async def test_rejected_application_is_a_configuration_error(self, make_adapter):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Invalid JWT"})

        with pytest.raises(ConfigurationError):
            await make_adapter(handler).fetch_accounts(_connection())
