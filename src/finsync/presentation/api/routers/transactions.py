"""Transactions router: account transaction reads and user recategorization."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from finsync.domain.banking.exceptions import (
    AccountNotFoundError,
    TransactionNotFoundError,
)
from finsync.presentation.api.dependencies import Container, CurrentTenant
from finsync.presentation.api.schemas import (
    CategoryUpdateRequest,
    TransactionListResponse,
    TransactionResponse,
)

logger = logging.getLogger(__name__)

accounts_router = APIRouter()
transactions_router = APIRouter()

LimitFilter = Annotated[
    int,
    Query(ge=1, le=500, description="Max transactions"),
]


@accounts_router.get(
    "/{account_id}/transactions",
    summary="List transactions of an account",
    responses={404: {"description": "Account not found"}},
)
async def list_account_transactions(
    account_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
    limit: LimitFilter = 100,
) -> TransactionListResponse:
    """
    Most recent transactions first.

    Reads are served from a replica unless this tenant wrote within the
    last few seconds, in which case the primary answers.
    """
    account = await container.accounts.get(tenant_id, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    transactions = await container.transactions.list_for_account(
        tenant_id,
        account_id,
        limit=limit,
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=len(transactions),
    )


@transactions_router.get(
    "/{transaction_id}",
    summary="Get a transaction",
    responses={404: {"description": "Transaction not found"}},
)
async def get_transaction(
    transaction_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
) -> TransactionResponse:
    transaction = await container.transactions.get(tenant_id, transaction_id)
    if transaction is None:
        raise TransactionNotFoundError(transaction_id)
    return TransactionResponse.model_validate(transaction)


@transactions_router.patch(
    "/{transaction_id}/category",
    summary="Override a transaction's category",
    responses={404: {"description": "Transaction not found"}},
)
async def update_category(
    transaction_id: UUID,
    request: CategoryUpdateRequest,
    tenant_id: CurrentTenant,
    container: Container,
) -> TransactionResponse:
    """The override is kept when the transaction is ingested again."""
    transaction = await container.transactions.set_user_category(
        tenant_id,
        transaction_id,
        request.category,
    )
    return TransactionResponse.model_validate(transaction)
