"""SQLAlchemy model for canonical transactions."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.infrastructure.persistence.sqlalchemy.models.base import (
    Base,
    TimestampMixin,
)


class TransactionModel(Base, TimestampMixin):
    """Database model for transactions.

    Deduplication Strategy:
    - idempotency_key: sha256 of account id and provider transaction id
    - Unique constraint on (tenant_id, idempotency_key), target of the upsert
    - id is derived from the idempotency key, so re-ingestion keeps the row id
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Scale 3 covers every ISO 4217 minor unit in use
    amount: Mapped[Decimal] = mapped_column(Numeric(20, 3), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    booked_on: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    counterparty_name: Mapped[Optional[str]] = mapped_column(String(255))

    category: Mapped[Optional[str]] = mapped_column(String(50))
    category_provenance: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="none",
    )
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="posted")

    __table_args__ = (
        Index(
            "idx_transaction_tenant_key",
            "tenant_id",
            "idempotency_key",
            unique=True,
        ),
        Index("idx_transaction_account_date", "account_id", "booked_on"),
    )

    def __repr__(self) -> str:
        return (
            f"<TransactionModel(id={self.id}, "
            f"date={self.booked_on}, amount={self.amount})>"
        )
