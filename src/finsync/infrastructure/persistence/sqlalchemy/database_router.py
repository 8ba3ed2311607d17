"""Consistency router: primary vs. replica selection per tenant.

Writes always go to the primary. Reads go to the primary while the tenant
has a live mutation marker (set on every write), otherwise to the nearest
replica. Replicas may lag the primary by at most the marker window.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from finsync.domain.shared.time import Clock
from finsync.infrastructure.persistence.mutation_marker_cache import (
    MutationMarkerCache,
)

if TYPE_CHECKING:
    from finsync_config.settings import Settings

logger = logging.getLogger(__name__)

PRIMARY = "primary"


class Operation(str, Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class RouteTarget:
    """Where a session for a given tenant/operation will be opened."""

    name: str
    region: Optional[str] = None

    @property
    def is_primary(self) -> bool:
        return self.name == PRIMARY

    @classmethod
    def primary(cls) -> RouteTarget:
        return cls(name=PRIMARY)

    @classmethod
    def replica(cls, region: str) -> RouteTarget:
        return cls(name=f"replica:{region}", region=region)


@dataclass(frozen=True)
class LocalityRule:
    """Picks the replica closest to this deployment.

    Order: the deployment's own region, then the configured preference
    order, then any configured replica (sorted by name).
    """

    deployment_region: str = "local"
    preference: tuple[str, ...] = field(default_factory=tuple)

    def choose(self, available_regions: Iterable[str]) -> Optional[str]:
        available = sorted(set(available_regions))
        if not available:
            return None
        if self.deployment_region in available:
            return self.deployment_region
        for region in self.preference:
            if region in available:
                return region
        return available[0]


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite files get their directory created."""
    if url.startswith("sqlite"):
        if ":memory:" in url:
            return create_async_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        db_path = url.split("///")[-1]
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


class DatabaseRouter:
    """
    Opens sessions on the primary or a replica.

    Parameters
    ----------
    primary_engine
        Engine of the writable primary
    replica_engines
        Read-only replicas keyed by region
    locality
        Replica selection rule
    markers
        Shared per-tenant mutation marker cache
    """

    def __init__(
        self,
        primary_engine: AsyncEngine,
        replica_engines: Optional[Mapping[str, AsyncEngine]] = None,
        locality: Optional[LocalityRule] = None,
        markers: Optional[MutationMarkerCache] = None,
    ):
        self._primary_engine = primary_engine
        self._replica_engines = dict(replica_engines or {})
        self._locality = locality or LocalityRule()
        self._markers = markers or MutationMarkerCache()

        self._session_makers: dict[str, async_sessionmaker[AsyncSession]] = {
            PRIMARY: self._make_session_maker(primary_engine),
        }
        for region, engine in self._replica_engines.items():
            target = RouteTarget.replica(region)
            self._session_makers[target.name] = self._make_session_maker(engine)

        self._replica_target: Optional[RouteTarget] = None
        region = self._locality.choose(self._replica_engines)
        if region is not None:
            self._replica_target = RouteTarget.replica(region)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Optional[Clock] = None,
    ) -> DatabaseRouter:
        markers = MutationMarkerCache(
            ttl_seconds=settings.read_after_write_window_seconds,
            max_entries=settings.mutation_marker_cache_size,
            clock=clock,
        )
        replicas = {
            region: build_engine(url)
            for region, url in settings.database_replica_urls.items()
        }
        locality = LocalityRule(
            deployment_region=settings.deployment_region,
            preference=tuple(settings.replica_region_preference),
        )
        router = cls(
            primary_engine=build_engine(settings.database_primary_url),
            replica_engines=replicas,
            locality=locality,
            markers=markers,
        )
        logger.info(
            "Database router ready (replicas: %s, read target: %s)",
            sorted(replicas) or "none",
            router._replica_target.name if router._replica_target else PRIMARY,
        )
        return router

    @staticmethod
    def _make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @property
    def primary_engine(self) -> AsyncEngine:
        return self._primary_engine

    @property
    def markers(self) -> MutationMarkerCache:
        return self._markers

    def target_for(
        self,
        tenant_id: Optional[UUID],
        operation: Operation,
    ) -> RouteTarget:
        """Decide where the next session for this tenant/operation goes.

        Reads without a tenant (scheduler, webhook resolution) have no
        marker to consult and use the primary.
        """
        if operation == Operation.WRITE or tenant_id is None:
            return RouteTarget.primary()
        if self._replica_target is None:
            return RouteTarget.primary()
        if self._markers.is_marked(tenant_id):
            return RouteTarget.primary()
        return self._replica_target

    def mark_mutated(self, tenant_id: UUID) -> None:
        self._markers.mark(tenant_id)

    @asynccontextmanager
    async def session(
        self,
        tenant_id: Optional[UUID],
        operation: Operation = Operation.READ,
    ) -> AsyncIterator[AsyncSession]:
        """
        Open a session on the routed target.

        Write sessions run in a transaction that commits on exit. The
        tenant's marker is set before the write starts and refreshed after
        commit, so no read in between can land on a lagging replica.
        """
        target = self.target_for(tenant_id, operation)
        session_maker = self._session_makers[target.name]

        if operation == Operation.WRITE:
            if tenant_id is not None:
                self._markers.mark(tenant_id)
            async with session_maker() as session, session.begin():
                yield session
            if tenant_id is not None:
                self._markers.mark(tenant_id)
            return

        async with session_maker() as session:
            yield session

    async def dispose(self) -> None:
        await self._primary_engine.dispose()
        for engine in self._replica_engines.values():
            await engine.dispose()
