"""Transaction schemas for API request/response models."""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from finsync.domain.normalization import (
    Category,
    CategoryProvenance,
    TransactionStatus,
)


class TransactionResponse(BaseModel):
    """A canonical transaction. Positive amounts are inflows."""

    id: UUID
    account_id: UUID
    external_id: str
    amount: Decimal
    currency: str
    booked_on: date
    description: str
    counterparty_name: Optional[str] = None
    category: Optional[Category] = None
    category_provenance: CategoryProvenance
    status: TransactionStatus

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "account_id": "660e8400-e29b-41d4-a716-446655440001",
                "external_id": "tx_9",
                "amount": "-12.50",
                "currency": "USD",
                "booked_on": "2024-03-01",
                "description": "Coffee",
                "counterparty_name": None,
                "category": "meals",
                "category_provenance": "provider_rule",
                "status": "posted",
            },
        },
    )


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int


class CategoryUpdateRequest(BaseModel):
    """Manual recategorization. ``null`` clears the category."""

    category: Optional[Category] = Field(
        ...,
        description="New category; the override survives later re-syncs",
    )
