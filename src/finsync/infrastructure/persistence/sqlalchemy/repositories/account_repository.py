"""SQLAlchemy implementation of AccountRepository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid5

from sqlalchemy import select, update

from finsync.domain.banking.repositories import AccountRepository
from finsync.domain.banking.value_objects import Account, AccountType
from finsync.domain.normalization import NormalizedAccount
from finsync.domain.shared.time import utc_now
from finsync.infrastructure.persistence.sqlalchemy.database_router import (
    DatabaseRouter,
    Operation,
)
from finsync.infrastructure.persistence.sqlalchemy.models import AccountModel
from finsync.infrastructure.persistence.sqlalchemy.repositories._utils import (
    aware,
    to_minor_units,
    dialect_insert,
)

logger = logging.getLogger(__name__)

ACCOUNT_NAMESPACE = UUID("6f1c2d3e-4a5b-4c6d-8e7f-9a0b1c2d3e4f")


def account_id_for(connection_id: UUID, external_id: str) -> UUID:
    """Deterministic account id: re-discovered accounts keep their id."""
    return uuid5(ACCOUNT_NAMESPACE, f"{connection_id}:{external_id}")


class AccountRepositorySQLAlchemy(AccountRepository):
    def __init__(self, router: DatabaseRouter):
        self._router = router

    async def upsert_snapshots(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        snapshots: list[NormalizedAccount],
    ) -> list[Account]:
        if not snapshots:
            return []

        now = utc_now()
        rows = {}
        for snapshot in snapshots:
            rows[snapshot.external_id] = {
                "id": account_id_for(connection_id, snapshot.external_id),
                "tenant_id": tenant_id,
                "connection_id": connection_id,
                "external_id": snapshot.external_id,
                "name": snapshot.name,
                "currency": snapshot.currency,
                "account_type": snapshot.account_type.value,
                "balance": snapshot.balance,
                "enabled": True,
                "created_at": now,
                "updated_at": now,
            }

        async with self._router.session(tenant_id, Operation.WRITE) as session:
            stmt = dialect_insert(session, AccountModel).values(list(rows.values()))
            excluded = stmt.excluded
            stmt = stmt.on_conflict_do_update(
                index_elements=[AccountModel.connection_id, AccountModel.external_id],
                set_={
                    column: excluded[column]
                    for column in (
                        "name",
                        "currency",
                        "account_type",
                        "balance",
                        "updated_at",
                    )
                },
            )
            await session.execute(stmt)

            result = await session.execute(
                select(AccountModel).where(
                    AccountModel.tenant_id == tenant_id,
                    AccountModel.connection_id == connection_id,
                    AccountModel.external_id.in_(list(rows)),
                ),
            )
            by_external = {m.external_id: m for m in result.scalars().all()}

        logger.info(
            "Refreshed %d account snapshot(s) for connection %s",
            len(by_external),
            connection_id,
        )
        return [
            self._to_domain(by_external[s.external_id])
            for s in snapshots
            if s.external_id in by_external
        ]

    async def get(self, tenant_id: UUID, account_id: UUID) -> Optional[Account]:
        stmt = select(AccountModel).where(
            AccountModel.tenant_id == tenant_id,
            AccountModel.id == account_id,
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_enabled(self, tenant_id: UUID, connection_id: UUID) -> list[Account]:
        stmt = (
            select(AccountModel)
            .where(
                AccountModel.tenant_id == tenant_id,
                AccountModel.connection_id == connection_id,
                AccountModel.enabled.is_(True),
            )
            .order_by(AccountModel.external_id)
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def touch_last_synced(
        self,
        tenant_id: UUID,
        account_id: UUID,
        synced_at: datetime,
    ) -> None:
        stmt = (
            update(AccountModel)
            .where(AccountModel.tenant_id == tenant_id, AccountModel.id == account_id)
            .values(last_synced_at=synced_at, updated_at=utc_now())
        )
        async with self._router.session(tenant_id, Operation.WRITE) as session:
            await session.execute(stmt)

    @staticmethod
    def _to_domain(model: AccountModel) -> Account:
        return Account(
            id=model.id,
            tenant_id=model.tenant_id,
            connection_id=model.connection_id,
            external_id=model.external_id,
            name=model.name,
            currency=model.currency,
            account_type=AccountType(model.account_type),
            balance=to_minor_units(model.balance, model.currency),
            enabled=model.enabled,
            last_synced_at=aware(model.last_synced_at),
        )
