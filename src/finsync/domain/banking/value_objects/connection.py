"""Connection and account records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from finsync.domain.banking.value_objects.provider_kind import ProviderKind


class ConnectionStatus(str, Enum):
    """Lifecycle status of a connection. Connections are never hard-deleted."""

    ACTIVE = "active"
    DISCONNECTED = "disconnected"
    EXPIRED = "expired"

    def is_syncable(self) -> bool:
        return self is ConnectionStatus.ACTIVE


class AccountType(str, Enum):
    DEPOSITORY = "depository"
    CREDIT = "credit"
    LOAN = "loan"
    INVESTMENT = "investment"
    OTHER = "other"


@dataclass(frozen=True)
class Connection:
    """A tenant's authorized link to one external banking provider."""

    id: UUID
    tenant_id: UUID
    provider: ProviderKind
    provider_reference: str
    credential_ref: str
    status: ConnectionStatus
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status.is_syncable()


@dataclass(frozen=True)
class Account:
    """A financial account surfaced under a connection."""

    id: UUID
    tenant_id: UUID
    connection_id: UUID
    external_id: str
    name: str
    currency: str
    account_type: AccountType
    balance: Optional[Decimal] = None
    enabled: bool = True
    last_synced_at: Optional[datetime] = None
