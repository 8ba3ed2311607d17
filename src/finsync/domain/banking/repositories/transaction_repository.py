"""Repository interface for canonical transactions (the persistence gateway)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finsync.domain.normalization import (
    Category,
    CategoryProvenance,
    NormalizedTransaction,
    TransactionStatus,
)


@dataclass(frozen=True)
class StoredTransaction:
    """A transaction as stored in the database."""

    id: UUID
    tenant_id: UUID
    account_id: UUID
    idempotency_key: str
    external_id: str
    amount: Decimal
    currency: str
    booked_on: date
    description: str
    counterparty_name: Optional[str]
    category: Optional[Category]
    category_provenance: CategoryProvenance
    status: TransactionStatus


@dataclass(frozen=True)
class UpsertResult:
    upserted: int
    inserted: int

    @property
    def updated(self) -> int:
        return self.upserted - self.inserted


class TransactionRepository(ABC):
    """Idempotent upsert boundary into the relational store."""

    @abstractmethod
    async def upsert_transactions(
        self,
        tenant_id: UUID,
        account_id: UUID,
        transactions: list[NormalizedTransaction],
    ) -> UpsertResult:
        """
        Upsert transactions keyed by idempotency key.

        Conflict policy: mutable fields (category, provenance, status,
        description) are updated, identity fields are preserved, and a
        category set by the user is never overwritten. Safe to call
        repeatedly with overlapping input.

        Side effect: the tenant is marked as recently mutated so its reads
        are served from the primary for the read-after-write window.

        Parameters
        ----------
        tenant_id
            Owning tenant
        account_id
            Account the transactions belong to
        transactions
            Normalized transactions

        Returns
        -------
        Number of rows upserted and how many of them were new
        """

    @abstractmethod
    async def list_for_account(
        self,
        tenant_id: UUID,
        account_id: UUID,
        limit: int = 100,
    ) -> list[StoredTransaction]:
        """Most recent transactions of an account."""

    @abstractmethod
    async def get(self, tenant_id: UUID, transaction_id: UUID) -> Optional[StoredTransaction]:
        """Find a transaction owned by a tenant."""

    @abstractmethod
    async def set_user_category(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        category: Optional[Category],
    ) -> StoredTransaction:
        """
        Record a manual category override.

        Re-syncs never replace a category whose provenance is ``user``.

        Raises
        ------
        TransactionNotFoundError
            If the tenant has no such transaction
        """
