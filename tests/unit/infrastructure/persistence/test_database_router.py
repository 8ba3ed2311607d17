"""
Tests for the consistency router.

Reads within the read-after-write window of a tenant's last write must go
to the primary; afterwards they may go to the nearest replica.
"""

import pytest

from finsync.infrastructure.persistence.sqlalchemy import (
    LocalityRule,
    Operation,
    RouteTarget,
)

from tests.shared.fixtures.database import READ_AFTER_WRITE_WINDOW_SECONDS, Repositories
from tests.shared.fixtures.factories import OTHER_TENANT_ID, TENANT_ID, make_connection


class TestLocalityRule:
    def test_prefers_own_region(self):
        rule = LocalityRule(deployment_region="eu-west-1", preference=("us-east-1",))

        assert rule.choose(["us-east-1", "eu-west-1"]) == "eu-west-1"

    def test_falls_back_to_preference_order(self):
        rule = LocalityRule(
            deployment_region="ap-south-1",
            preference=("eu-central-1", "us-east-1"),
        )

        assert rule.choose(["us-east-1", "eu-central-1"]) == "eu-central-1"

    def test_falls_back_to_first_region_by_name(self):
        rule = LocalityRule(deployment_region="ap-south-1")

        assert rule.choose(["us-east-1", "eu-central-1"]) == "eu-central-1"

    def test_no_replicas(self):
        assert LocalityRule().choose([]) is None


class TestRouteSelection:
    @pytest.mark.asyncio
    async def test_writes_always_go_to_the_primary(self, replicated_router):
        target = replicated_router.target_for(TENANT_ID, Operation.WRITE)

        assert target == RouteTarget.primary()

    @pytest.mark.asyncio
    async def test_reads_go_to_replica_without_recent_write(self, replicated_router):
        target = replicated_router.target_for(TENANT_ID, Operation.READ)

        assert target == RouteTarget.replica("local")
        assert not target.is_primary

    @pytest.mark.asyncio
    async def test_reads_stick_to_primary_inside_the_window(
        self,
        replicated_router,
        fake_clock,
    ):
        replicated_router.mark_mutated(TENANT_ID)

        fake_clock.advance(READ_AFTER_WRITE_WINDOW_SECONDS - 0.5)
        assert replicated_router.target_for(TENANT_ID, Operation.READ).is_primary

        fake_clock.advance(1.0)
        assert not replicated_router.target_for(TENANT_ID, Operation.READ).is_primary

    @pytest.mark.asyncio
    async def test_marker_is_per_tenant(self, replicated_router):
        replicated_router.mark_mutated(TENANT_ID)

        target = replicated_router.target_for(OTHER_TENANT_ID, Operation.READ)

        assert not target.is_primary

    @pytest.mark.asyncio
    async def test_tenantless_reads_use_the_primary(self, replicated_router):
        assert replicated_router.target_for(None, Operation.READ).is_primary

    @pytest.mark.asyncio
    async def test_without_replicas_everything_is_primary(self, db_router):
        assert db_router.target_for(TENANT_ID, Operation.READ).is_primary


class TestReadAfterWrite:
    """End to end over two separate SQLite databases.

    The replica database never receives writes here, so a read that finds
    the row must have been served by the primary.
    """

    @pytest.mark.asyncio
    async def test_read_your_own_write_then_replica(self, replicated_router, fake_clock):
        repos = Repositories.on(replicated_router)
        connection = make_connection()

        await repos.connections.save(connection)

        fake_clock.advance(READ_AFTER_WRITE_WINDOW_SECONDS - 1.0)
        assert await repos.connections.get(TENANT_ID, connection.id) == connection

        fake_clock.advance(2.0)
        assert await repos.connections.get(TENANT_ID, connection.id) is None

    @pytest.mark.asyncio
    async def test_write_refreshes_the_window(self, replicated_router, fake_clock):
        repos = Repositories.on(replicated_router)
        connection = make_connection()
        await repos.connections.save(connection)

        fake_clock.advance(8.0)
        synced_at = fake_clock.now()
        await repos.connections.touch_last_synced(TENANT_ID, connection.id, synced_at)
        fake_clock.advance(8.0)

        stored = await repos.connections.get(TENANT_ID, connection.id)
        assert stored is not None
        assert stored.last_synced_at == synced_at
