"""Canonical records produced by the normalization engine."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from finsync.domain.banking.value_objects import AccountType


class Category(str, Enum):
    """Canonical transaction categories."""

    INCOME = "income"
    TRANSFER = "transfer"
    MEALS = "meals"
    GROCERIES = "groceries"
    TRAVEL = "travel"
    SOFTWARE = "software"
    RENT = "rent"
    UTILITIES = "utilities"
    INTERNET_AND_PHONE = "internet-and-phone"
    EQUIPMENT = "equipment"
    OFFICE_SUPPLIES = "office-supplies"
    FEES = "fees"
    TAXES = "taxes"
    INSURANCE = "insurance"
    LOAN_PAYMENTS = "loan-payments"
    HEALTHCARE = "healthcare"
    ENTERTAINMENT = "entertainment"


class CategoryProvenance(str, Enum):
    """Where a transaction's category came from.

    ``AMOUNT_HEURISTIC`` is a tentative guess and must never be presented
    as equivalent to an explicit ``PROVIDER_RULE`` match. ``USER`` marks a
    manual override that re-syncs must not replace.
    """

    PROVIDER_RULE = "provider_rule"
    AMOUNT_HEURISTIC = "amount_heuristic"
    USER = "user"
    NONE = "none"

    @property
    def is_tentative(self) -> bool:
        return self is CategoryProvenance.AMOUNT_HEURISTIC


class TransactionStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"


class NormalizedTransaction(BaseModel):
    """Canonical transaction, ready for persistence.

    Positive amounts are inflows, negative amounts are outflows.
    """

    account_id: UUID | str
    idempotency_key: str = Field(..., min_length=64, max_length=64)
    external_id: str
    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)
    booked_on: date
    description: str
    counterparty_name: Optional[str] = None
    category: Optional[Category] = None
    category_provenance: CategoryProvenance = CategoryProvenance.NONE
    status: TransactionStatus = TransactionStatus.POSTED

    model_config = ConfigDict(frozen=True)

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return str(value)

    def is_inflow(self) -> bool:
        return self.amount > 0

    def is_outflow(self) -> bool:
        return self.amount < 0


class NormalizedAccount(BaseModel):
    """Canonical account snapshot."""

    external_id: str
    name: str
    currency: str = Field(..., min_length=3, max_length=3)
    account_type: AccountType = AccountType.OTHER
    balance: Optional[Decimal] = None

    model_config = ConfigDict(frozen=True)
