"""Connections router: registration, listing and manual sync triggers."""

import logging
from typing import Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, status

from finsync.domain.banking.exceptions import ConnectionNotFoundError
from finsync.domain.banking.value_objects import Connection, ConnectionStatus
from finsync.domain.shared.exceptions import ConflictError
from finsync.presentation.api.dependencies import Container, CurrentTenant
from finsync.presentation.api.schemas import (
    AccountListResponse,
    AccountResponse,
    ConnectionCreateRequest,
    ConnectionListResponse,
    ConnectionResponse,
    SyncAcceptedResponse,
    SyncRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    summary="List connections",
)
async def list_connections(
    tenant_id: CurrentTenant,
    container: Container,
) -> ConnectionListResponse:
    connections = await container.connections.list_for_tenant(tenant_id)
    return ConnectionListResponse(
        connections=[ConnectionResponse.model_validate(c) for c in connections],
        total=len(connections),
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Register an authorized connection",
    responses={
        404: {"description": "Provider is not enabled"},
        409: {"description": "The provider reference is already registered"},
    },
)
async def create_connection(
    request: ConnectionCreateRequest,
    tenant_id: CurrentTenant,
    container: Container,
) -> ConnectionResponse:
    """
    Store a connection once the provider's link flow has completed.

    The first sync is not started automatically; call
    `POST /connections/{id}/sync` with `full_history=true` for that.
    """
    container.providers.adapter_for(request.provider)
    existing = await container.connections.find_by_provider_reference(
        request.provider,
        request.provider_reference,
    )
    if existing is not None:
        msg = "This provider link is already registered"
        raise ConflictError(msg, details={"connection_id": str(existing.id)})

    connection = Connection(
        id=uuid4(),
        tenant_id=tenant_id,
        provider=request.provider,
        provider_reference=request.provider_reference,
        credential_ref=request.credential_ref,
        status=ConnectionStatus.ACTIVE,
    )
    await container.connections.save(connection)
    logger.info("Registered %s connection %s", connection.provider.value, connection.id)
    return ConnectionResponse.model_validate(connection)


@router.get(
    "/{connection_id}",
    summary="Get a connection",
    responses={404: {"description": "Connection not found"}},
)
async def get_connection(
    connection_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
) -> ConnectionResponse:
    connection = await container.connections.get(tenant_id, connection_id)
    if connection is None:
        raise ConnectionNotFoundError(connection_id)
    return ConnectionResponse.model_validate(connection)


@router.get(
    "/{connection_id}/accounts",
    summary="List accounts of a connection",
    responses={404: {"description": "Connection not found"}},
)
async def list_accounts(
    connection_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
) -> AccountListResponse:
    connection = await container.connections.get(tenant_id, connection_id)
    if connection is None:
        raise ConnectionNotFoundError(connection_id)
    accounts = await container.accounts.list_enabled(tenant_id, connection_id)
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        total=len(accounts),
    )


@router.post(
    "/{connection_id}/sync",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger a sync",
    responses={
        202: {"description": "Sync job queued"},
        404: {"description": "Connection not found"},
        422: {"description": "Connection is disconnected or expired"},
    },
)
async def trigger_sync(
    connection_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
    request: Optional[SyncRequest] = None,
) -> SyncAcceptedResponse:
    """
    Queue a connection-level sync and return immediately.

    Poll `GET /sync-jobs/{job_id}` for progress.
    """
    full_history = request.full_history if request else False
    job = await container.triggers.trigger_manual(
        tenant_id,
        connection_id,
        full_history=full_history,
    )
    return SyncAcceptedResponse(
        job_id=job.id,
        connection_id=job.connection_id,
        state=job.state,
        full_history=job.full_history,
    )
