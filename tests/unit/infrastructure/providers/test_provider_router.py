"""Tests for the provider router."""

import pytest
from pydantic import SecretStr

from finsync.domain.banking.exceptions import UnsupportedProviderError
from finsync.domain.banking.value_objects import ProviderKind
from finsync.infrastructure.providers import (
    PlaidAdapter,
    ProviderRouter,
    TellerAdapter,
    build_provider_router,
)
from finsync_config.settings import Settings

from tests.shared.fixtures.factories import make_connection
from tests.shared.fixtures.providers import FakeProviderAdapter


@pytest.fixture
def router() -> ProviderRouter:
    return ProviderRouter(
        {
            ProviderKind.TELLER: FakeProviderAdapter(kind=ProviderKind.TELLER),
            ProviderKind.PLAID: FakeProviderAdapter(kind=ProviderKind.PLAID, healthy=False),
        },
    )


class TestAdapterResolution:
    def test_by_kind_string_and_connection(self, router):
        teller = router.adapter_for(ProviderKind.TELLER)

        assert router.adapter_for("teller") is teller
        assert router.adapter_for(make_connection(provider=ProviderKind.TELLER)) is teller

    def test_unregistered_kind(self, router):
        with pytest.raises(UnsupportedProviderError) as exc_info:
            router.adapter_for(ProviderKind.GOCARDLESS)

        assert exc_info.value.provider == "gocardless"

    def test_unknown_provider_name(self, router):
        with pytest.raises(UnsupportedProviderError):
            router.adapter_for("mystery-bank")

    def test_supports(self, router):
        assert router.supports("plaid")
        assert not router.supports(ProviderKind.ENABLEBANKING)
        assert not router.supports("mystery-bank")
        assert router.kinds == frozenset({ProviderKind.TELLER, ProviderKind.PLAID})


class TestStartupCheck:
    def test_passes_when_every_kind_is_registered(self, router):
        router.ensure_supports({"teller", "plaid"})

    def test_fails_fast_on_a_persisted_unknown_kind(self, router):
        with pytest.raises(UnsupportedProviderError) as exc_info:
            router.ensure_supports(["teller", "enablebanking"])

        assert exc_info.value.provider == "enablebanking"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_healthcheck_reports_every_adapter(self, router):
        report = await router.healthcheck()

        assert [(h.provider, h.healthy) for h in report] == [
            (ProviderKind.PLAID, False),
            (ProviderKind.TELLER, True),
        ]

    @pytest.mark.asyncio
    async def test_close_closes_every_adapter(self, router):
        await router.close()

        assert router.adapter_for("teller").closed
        assert router.adapter_for("plaid").closed


class TestBuildFromSettings:
    def test_only_enabled_providers_are_registered(self):
        settings = Settings(
            _env_file=None,
            plaid_enabled=True,
            plaid_client_id="client",
            plaid_secret=SecretStr("secret"),
            teller_enabled=True,
            gocardless_enabled=False,
            enablebanking_enabled=False,
        )

        router = build_provider_router(settings)

        assert router.kinds == frozenset({ProviderKind.PLAID, ProviderKind.TELLER})
        assert isinstance(router.adapter_for("plaid"), PlaidAdapter)
        assert isinstance(router.adapter_for("teller"), TellerAdapter)
