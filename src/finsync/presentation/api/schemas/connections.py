"""Connection and account schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from finsync.domain.banking.value_objects import (
    AccountType,
    ConnectionStatus,
    ProviderKind,
)


class ConnectionCreateRequest(BaseModel):
    """Register a connection the link flow has just authorized."""

    provider: ProviderKind
    provider_reference: str = Field(
        ...,
        min_length=1,
        description="Provider-assigned link id (Plaid item id, Teller enrollment id, ...)",
    )
    credential_ref: str = Field(
        ...,
        min_length=1,
        description="Access token or session id used to call the provider",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "provider": "teller",
                "provider_reference": "enr_o0cmbd4lkr1ouq5mjq000",
                "credential_ref": "token_7mhv2e4dkz3s",
            },
        },
    )


class ConnectionResponse(BaseModel):
    """A connection as seen by its tenant. Credentials are never returned."""

    id: UUID
    provider: ProviderKind
    provider_reference: str
    status: ConnectionStatus
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ConnectionListResponse(BaseModel):
    connections: list[ConnectionResponse]
    total: int


class AccountResponse(BaseModel):
    id: UUID
    connection_id: UUID
    external_id: str
    name: str
    currency: str
    account_type: AccountType
    balance: Optional[Decimal] = None
    enabled: bool
    last_synced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AccountListResponse(BaseModel):
    accounts: list[AccountResponse]
    total: int
