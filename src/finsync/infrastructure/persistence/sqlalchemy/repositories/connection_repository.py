"""SQLAlchemy implementation of ConnectionRepository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from finsync.domain.banking.repositories import ConnectionRepository
from finsync.domain.banking.value_objects import (
    Connection,
    ConnectionStatus,
    ProviderKind,
)
from finsync.domain.shared.time import utc_now
from finsync.infrastructure.persistence.sqlalchemy.database_router import (
    DatabaseRouter,
    Operation,
)
from finsync.infrastructure.persistence.sqlalchemy.models import ConnectionModel
from finsync.infrastructure.persistence.sqlalchemy.repositories._utils import aware

logger = logging.getLogger(__name__)


class ConnectionRepositorySQLAlchemy(ConnectionRepository):
    def __init__(self, router: DatabaseRouter):
        self._router = router

    async def save(self, connection: Connection) -> None:
        async with self._router.session(connection.tenant_id, Operation.WRITE) as session:
            model = await session.get(ConnectionModel, connection.id)
            if model is None:
                model = ConnectionModel(id=connection.id, tenant_id=connection.tenant_id)
                session.add(model)
            elif model.tenant_id != connection.tenant_id:
                msg = f"Connection {connection.id} belongs to another tenant"
                raise ValueError(msg)
            model.provider = connection.provider.value
            model.provider_reference = connection.provider_reference
            model.credential_ref = connection.credential_ref
            model.status = connection.status.value
            model.last_synced_at = connection.last_synced_at
            model.last_error = connection.last_error

    async def get(self, tenant_id: UUID, connection_id: UUID) -> Optional[Connection]:
        stmt = select(ConnectionModel).where(
            ConnectionModel.tenant_id == tenant_id,
            ConnectionModel.id == connection_id,
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_tenant(self, tenant_id: UUID) -> list[Connection]:
        stmt = (
            select(ConnectionModel)
            .where(ConnectionModel.tenant_id == tenant_id)
            .order_by(ConnectionModel.created_at)
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def list_active(self) -> list[Connection]:
        stmt = (
            select(ConnectionModel)
            .where(ConnectionModel.status == ConnectionStatus.ACTIVE.value)
            .order_by(ConnectionModel.tenant_id, ConnectionModel.created_at)
        )
        async with self._router.session(None, Operation.READ) as session:
            models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def find_by_provider_reference(
        self,
        provider: ProviderKind,
        provider_reference: str,
    ) -> Optional[Connection]:
        stmt = select(ConnectionModel).where(
            ConnectionModel.provider == provider.value,
            ConnectionModel.provider_reference == provider_reference,
        )
        async with self._router.session(None, Operation.READ) as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_provider_kinds(self) -> set[str]:
        stmt = select(ConnectionModel.provider).distinct()
        async with self._router.session(None, Operation.READ) as session:
            rows = (await session.execute(stmt)).scalars().all()
        return set(rows)

    async def update_status(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        status: ConnectionStatus,
        error: Optional[str] = None,
    ) -> None:
        stmt = (
            update(ConnectionModel)
            .where(
                ConnectionModel.tenant_id == tenant_id,
                ConnectionModel.id == connection_id,
            )
            .values(status=status.value, last_error=error, updated_at=utc_now())
        )
        async with self._router.session(tenant_id, Operation.WRITE) as session:
            await session.execute(stmt)
        logger.info("Connection %s is now %s", connection_id, status.value)

    async def touch_last_synced(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        synced_at: datetime,
    ) -> None:
        stmt = (
            update(ConnectionModel)
            .where(
                ConnectionModel.tenant_id == tenant_id,
                ConnectionModel.id == connection_id,
            )
            .values(last_synced_at=synced_at, last_error=None, updated_at=utc_now())
        )
        async with self._router.session(tenant_id, Operation.WRITE) as session:
            await session.execute(stmt)

    @staticmethod
    def _to_domain(model: ConnectionModel) -> Connection:
        return Connection(
            id=model.id,
            tenant_id=model.tenant_id,
            provider=ProviderKind(model.provider),
            provider_reference=model.provider_reference,
            credential_ref=model.credential_ref,
            status=ConnectionStatus(model.status),
            last_synced_at=aware(model.last_synced_at),
            last_error=model.last_error,
        )
