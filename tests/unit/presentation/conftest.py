"""Fixtures for API tests.

The app runs against a SQLite file with a scripted Teller adapter. Background
sync jobs run on the TestClient's event loop; drain them through the portal
before asserting on their results.
"""

import pytest
from fastapi.testclient import TestClient

from finsync.domain.banking.value_objects import ProviderKind
from finsync.infrastructure.container import ServiceContainer, build_container
from finsync.infrastructure.persistence.sqlalchemy import DatabaseRouter, build_engine
from finsync.infrastructure.providers import ProviderRouter
from finsync.presentation.api.app import create_app
from finsync_config.settings import Settings

from tests.shared.fixtures.api import JWT_SECRET, TELLER_SECRET
from tests.shared.fixtures.clock import FakeClock
from tests.shared.fixtures.factories import raw_account, raw_transaction
from tests.shared.fixtures.providers import FakeProviderAdapter


@pytest.fixture
def api_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def teller_adapter() -> FakeProviderAdapter:
    return FakeProviderAdapter(
        accounts=[raw_account("acc_1")],
        transactions={
            "acc_1": [
                raw_transaction("tx_1", "-12.50", booked_on="2024-02-28", description="Coffee"),
                raw_transaction("tx_2", "2500.00", booked_on="2024-02-20", description="Payroll"),
            ],
        },
    )


@pytest.fixture
def container(tmp_path, api_clock, teller_adapter) -> ServiceContainer:
    settings = Settings(
        _env_file=None,
        identity_jwt_secret=JWT_SECRET,
        teller_signing_secret=TELLER_SECRET,
        sync_per_connection_concurrency=1,
    )
    database = DatabaseRouter(build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"))
    return build_container(
        settings,
        clock=api_clock,
        database=database,
        providers=ProviderRouter({ProviderKind.TELLER: teller_adapter}),
    )


@pytest.fixture
def client(container):
    app = create_app(settings=container.settings, container=container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def drain(client, container):
    """Wait for every dispatched sync job to finish."""

    def _drain() -> None:
        client.portal.call(container.dispatcher.drain)

    return _drain
