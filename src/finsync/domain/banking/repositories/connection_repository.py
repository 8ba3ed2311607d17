"""Repository interface for connections."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from finsync.domain.banking.value_objects import (
    Connection,
    ConnectionStatus,
    ProviderKind,
)


class ConnectionRepository(ABC):
    """Repository for provider connections. Connections are never deleted."""

    @abstractmethod
    async def save(self, connection: Connection) -> None:
        """Insert or update a connection."""

    @abstractmethod
    async def get(self, tenant_id: UUID, connection_id: UUID) -> Optional[Connection]:
        """Find a connection owned by a tenant."""

    @abstractmethod
    async def list_for_tenant(self, tenant_id: UUID) -> list[Connection]:
        """All connections of a tenant, any status."""

    @abstractmethod
    async def list_active(self) -> list[Connection]:
        """
        All active connections across tenants.

        Used by the scheduled tick only; this is the one cross-tenant read.
        """

    @abstractmethod
    async def find_by_provider_reference(
        self,
        provider: ProviderKind,
        provider_reference: str,
    ) -> Optional[Connection]:
        """
        Resolve a provider-assigned link id (from a webhook) to a connection.

        Parameters
        ----------
        provider
            Provider that issued the reference
        provider_reference
            Plaid item id, Teller enrollment id, ...

        Returns
        -------
        The connection if known, None otherwise
        """

    @abstractmethod
    async def list_provider_kinds(self) -> set[str]:
        """Distinct provider kinds of all persisted connections."""

    @abstractmethod
    async def update_status(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        status: ConnectionStatus,
        error: Optional[str] = None,
    ) -> None:
        """Set the connection status (soft state only)."""

    @abstractmethod
    async def touch_last_synced(
        self,
        tenant_id: UUID,
        connection_id: UUID,
        synced_at: datetime,
    ) -> None:
        """Record a successful sync."""
