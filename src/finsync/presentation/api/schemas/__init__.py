"""API request/response schemas."""

from finsync.presentation.api.schemas.connections import (
    AccountListResponse,
    AccountResponse,
    ConnectionCreateRequest,
    ConnectionListResponse,
    ConnectionResponse,
)
from finsync.presentation.api.schemas.providers import (
    ProviderHealthResponse,
    ProvidersHealthResponse,
)
from finsync.presentation.api.schemas.sync import (
    CancelResponse,
    SyncAcceptedResponse,
    SyncJobResponse,
    SyncRequest,
    WebhookResponse,
)
from finsync.presentation.api.schemas.transactions import (
    CategoryUpdateRequest,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    "AccountListResponse",
    "AccountResponse",
    "CancelResponse",
    "CategoryUpdateRequest",
    "ConnectionCreateRequest",
    "ConnectionListResponse",
    "ConnectionResponse",
    "ProviderHealthResponse",
    "ProvidersHealthResponse",
    "SyncAcceptedResponse",
    "SyncJobResponse",
    "SyncRequest",
    "TransactionListResponse",
    "TransactionResponse",
    "WebhookResponse",
]
