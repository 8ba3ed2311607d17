"""SQLAlchemy implementation of TransactionRepository (persistence gateway)."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID, uuid5

from sqlalchemy import case, select, update

from finsync.domain.banking.exceptions import TransactionNotFoundError
from finsync.domain.banking.repositories import (
    StoredTransaction,
    TransactionRepository,
    UpsertResult,
)
from finsync.domain.normalization import (
    Category,
    CategoryProvenance,
    NormalizedTransaction,
    TransactionStatus,
)
from finsync.domain.shared.time import utc_now
from finsync.infrastructure.persistence.sqlalchemy.database_router import (
    DatabaseRouter,
    Operation,
)
from finsync.infrastructure.persistence.sqlalchemy.models import TransactionModel
from finsync.infrastructure.persistence.sqlalchemy.repositories._utils import (
    chunked,
    dialect_insert,
    ensure_uuid,
    to_minor_units,
)

logger = logging.getLogger(__name__)

TRANSACTION_NAMESPACE = UUID("a3b4c5d6-e7f8-4a9b-8c0d-1e2f3a4b5c6d")


def transaction_id_for(idempotency_key: str) -> UUID:
    return uuid5(TRANSACTION_NAMESPACE, idempotency_key)


class TransactionRepositorySQLAlchemy(TransactionRepository):
    """SQLAlchemy implementation of the transaction repository.

    Uses a dialect ``INSERT .. ON CONFLICT DO UPDATE`` on
    (tenant_id, idempotency_key), so concurrent or repeated ingestion of
    the same provider transaction always lands on one row.
    """

    def __init__(self, router: DatabaseRouter):
        self._router = router

    async def upsert_transactions(
        self,
        tenant_id: UUID,
        account_id: UUID,
        transactions: list[NormalizedTransaction],
    ) -> UpsertResult:
        if not transactions:
            return UpsertResult(upserted=0, inserted=0)

        # Last occurrence wins within a batch
        rows_by_key: dict[str, dict] = {}
        now = utc_now()
        for tx in transactions:
            tx_account_id = ensure_uuid(tx.account_id)
            if tx_account_id != account_id:
                msg = (
                    f"Transaction {tx.external_id} belongs to account "
                    f"{tx_account_id}, not {account_id}"
                )
                raise ValueError(msg)
            rows_by_key[tx.idempotency_key] = {
                "id": transaction_id_for(tx.idempotency_key),
                "tenant_id": tenant_id,
                "account_id": account_id,
                "idempotency_key": tx.idempotency_key,
                "external_id": tx.external_id,
                "amount": tx.amount,
                "currency": tx.currency,
                "booked_on": tx.booked_on,
                "description": tx.description,
                "counterparty_name": tx.counterparty_name,
                "category": tx.category.value if tx.category else None,
                "category_provenance": tx.category_provenance.value,
                "status": tx.status.value,
                "created_at": now,
                "updated_at": now,
            }

        rows = list(rows_by_key.values())
        inserted = 0

        async with self._router.session(tenant_id, Operation.WRITE) as session:
            for chunk in chunked(rows):
                keys = [row["idempotency_key"] for row in chunk]
                existing = await session.execute(
                    select(TransactionModel.idempotency_key).where(
                        TransactionModel.tenant_id == tenant_id,
                        TransactionModel.idempotency_key.in_(keys),
                    ),
                )
                inserted += len(keys) - len(set(existing.scalars().all()))

                stmt = dialect_insert(session, TransactionModel).values(chunk)
                excluded = stmt.excluded
                user_owned = (
                    TransactionModel.category_provenance
                    == CategoryProvenance.USER.value
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[
                        TransactionModel.tenant_id,
                        TransactionModel.idempotency_key,
                    ],
                    set_={
                        "category": case(
                            (user_owned, TransactionModel.category),
                            else_=excluded["category"],
                        ),
                        "category_provenance": case(
                            (user_owned, TransactionModel.category_provenance),
                            else_=excluded["category_provenance"],
                        ),
                        "status": excluded["status"],
                        "description": excluded["description"],
                        "counterparty_name": excluded["counterparty_name"],
                        "updated_at": excluded["updated_at"],
                    },
                )
                await session.execute(stmt)

        logger.info(
            "Upserted %d transaction(s) for account %s (%d new)",
            len(rows),
            account_id,
            inserted,
        )
        return UpsertResult(upserted=len(rows), inserted=inserted)

    async def list_for_account(
        self,
        tenant_id: UUID,
        account_id: UUID,
        limit: int = 100,
    ) -> list[StoredTransaction]:
        stmt = (
            select(TransactionModel)
            .where(
                TransactionModel.tenant_id == tenant_id,
                TransactionModel.account_id == account_id,
            )
            .order_by(
                TransactionModel.booked_on.desc(),
                TransactionModel.external_id,
            )
            .limit(limit)
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def get(self, tenant_id: UUID, transaction_id: UUID) -> Optional[StoredTransaction]:
        stmt = select(TransactionModel).where(
            TransactionModel.tenant_id == tenant_id,
            TransactionModel.id == transaction_id,
        )
        async with self._router.session(tenant_id, Operation.READ) as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def set_user_category(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        category: Optional[Category],
    ) -> StoredTransaction:
        stmt = (
            update(TransactionModel)
            .where(
                TransactionModel.tenant_id == tenant_id,
                TransactionModel.id == transaction_id,
            )
            .values(
                category=category.value if category else None,
                category_provenance=CategoryProvenance.USER.value,
                updated_at=utc_now(),
            )
        )
        async with self._router.session(tenant_id, Operation.WRITE) as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise TransactionNotFoundError(transaction_id)
            model = (
                await session.execute(
                    select(TransactionModel).where(
                        TransactionModel.tenant_id == tenant_id,
                        TransactionModel.id == transaction_id,
                    ),
                )
            ).scalar_one()
            stored = self._to_domain(model)

        logger.info("Transaction %s recategorized by user", transaction_id)
        return stored

    @staticmethod
    def _to_domain(model: TransactionModel) -> StoredTransaction:
        return StoredTransaction(
            id=model.id,
            tenant_id=model.tenant_id,
            account_id=model.account_id,
            idempotency_key=model.idempotency_key,
            external_id=model.external_id,
            amount=to_minor_units(model.amount, model.currency),
            currency=model.currency,
            booked_on=model.booked_on,
            description=model.description,
            counterparty_name=model.counterparty_name,
            category=Category(model.category) if model.category else None,
            category_provenance=CategoryProvenance(model.category_provenance),
            status=TransactionStatus(model.status),
        )
