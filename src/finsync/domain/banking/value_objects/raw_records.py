"""Raw provider records.

Raw records are what adapters hand over before normalization. Their
fields are deliberately loose: an adapter copies what the provider sent
and the normalization engine decides whether it is usable.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from finsync.domain.banking.value_objects.provider_kind import ProviderKind


class CreditDebit(str, Enum):
    """Explicit direction indicator for providers reporting absolute amounts."""

    CREDIT = "credit"
    DEBIT = "debit"


class RawAccount(BaseModel):
    """Unprocessed account item from a provider."""

    provider: ProviderKind
    external_id: Optional[str] = None
    name: Optional[str] = None
    currency: Optional[str] = None
    balance: Any = None
    account_type: Optional[str] = None
    account_subtype: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RawTransaction(BaseModel):
    """Unprocessed transaction item from a provider."""

    provider: ProviderKind
    external_id: Optional[str] = None
    account_external_id: Optional[str] = None
    amount: Any = None
    currency: Optional[str] = None
    booked_on: Any = None
    description: Optional[str] = None
    counterparty_name: Optional[str] = None
    pending: bool = False
    direction: Optional[CreditDebit] = None
    provider_category: Optional[str] = Field(
        default=None,
        description="Provider's own category code, if it sends one",
    )

    model_config = ConfigDict(frozen=True)


class TransactionPage(BaseModel):
    """One page of raw transactions plus the cursor for the next page."""

    records: list[RawTransaction] = Field(default_factory=list)
    next_cursor: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class ProviderHealth(BaseModel):
    provider: ProviderKind
    healthy: bool
    detail: Optional[str] = None

    model_config = ConfigDict(frozen=True)
