"""Repository interface for accounts."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from finsync.domain.banking.value_objects import Account
from finsync.domain.normalization import NormalizedAccount


class AccountRepository(ABC):
    """Repository for accounts under connections."""

    @abstractmethod
    async def upsert_snapshots(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        snapshots: list[NormalizedAccount],
    ) -> list[Account]:
        """
        Insert new accounts and refresh balance/name/type of known ones.

        Accounts are keyed by (connection id, external account id).

        Returns
        -------
        The stored accounts, in input order
        """

    @abstractmethod
    async def get(self, tenant_id: UUID, account_id: UUID) -> Optional[Account]:
        """Find an account owned by a tenant."""

    @abstractmethod
    async def list_enabled(self, tenant_id: UUID, connection_id: UUID) -> list[Account]:
        """Accounts of a connection that take part in syncs."""

    @abstractmethod
    async def touch_last_synced(
        self,
        tenant_id: UUID,
        account_id: UUID,
        synced_at: datetime,
    ) -> None:
        """Record a successful account sync."""
