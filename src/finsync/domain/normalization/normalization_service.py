"""Normalization & categorization of raw provider records.

Every function here is pure: identical input always produces an identical
output, which is what makes re-syncs safe to upsert.

Transaction pipeline, in order:
1. sign normalization (positive = inflow, negative = outflow)
2. amount parsing into a fixed-point Decimal
3. category assignment (provider rule > amount-sign heuristic > none)
4. idempotency key derivation
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from finsync.domain.banking.value_objects import (
    AccountType,
    CreditDebit,
    ProviderKind,
    RawAccount,
    RawTransaction,
)
from finsync.domain.normalization.category_rules import lookup_provider_category
from finsync.domain.normalization.exceptions import RecordValidationError
from finsync.domain.normalization.money import (
    parse_amount,
    parse_booking_date,
    parse_currency,
)
from finsync.domain.normalization.normalized_records import (
    Category,
    CategoryProvenance,
    NormalizedAccount,
    NormalizedTransaction,
    TransactionStatus,
)

logger = logging.getLogger(__name__)


class SignConvention(Enum):
    INFLOW_POSITIVE = "inflow_positive"
    OUTFLOW_POSITIVE = "outflow_positive"


PROVIDER_SIGN_CONVENTIONS: dict[ProviderKind, SignConvention] = {
    # Plaid reports money leaving the account as a positive amount
    ProviderKind.PLAID: SignConvention.OUTFLOW_POSITIVE,
    ProviderKind.TELLER: SignConvention.INFLOW_POSITIVE,
    ProviderKind.GOCARDLESS: SignConvention.INFLOW_POSITIVE,
    # Enable Banking sends absolute amounts plus a credit/debit indicator
    ProviderKind.ENABLEBANKING: SignConvention.INFLOW_POSITIVE,
}

_ACCOUNT_TYPE_ALIASES: dict[str, AccountType] = {
    "depository": AccountType.DEPOSITORY,
    "checking": AccountType.DEPOSITORY,
    "savings": AccountType.DEPOSITORY,
    "current": AccountType.DEPOSITORY,
    "cacc": AccountType.DEPOSITORY,
    "svgs": AccountType.DEPOSITORY,
    "tran": AccountType.DEPOSITORY,
    "credit": AccountType.CREDIT,
    "credit_card": AccountType.CREDIT,
    "card": AccountType.CREDIT,
    "loan": AccountType.LOAN,
    "mortgage": AccountType.LOAN,
    "investment": AccountType.INVESTMENT,
    "brokerage": AccountType.INVESTMENT,
}


def derive_idempotency_key(account_id: UUID | str, external_id: str) -> str:
    """Deterministic dedup key for a provider transaction within an account."""
    identity_string = f"{account_id}|{external_id}"
    return hashlib.sha256(identity_string.encode("utf-8")).hexdigest()


def normalize_sign(amount: Decimal, raw: RawTransaction) -> Decimal:
    """Apply the canonical sign convention: positive = inflow."""
    if raw.direction is not None:
        magnitude = abs(amount)
        return magnitude if raw.direction is CreditDebit.CREDIT else -magnitude

    convention = PROVIDER_SIGN_CONVENTIONS.get(
        raw.provider,
        SignConvention.INFLOW_POSITIVE,
    )
    if convention is SignConvention.OUTFLOW_POSITIVE and not amount.is_zero():
        return -amount
    return amount


def categorize(
    raw: RawTransaction,
    amount: Decimal,
) -> tuple[Optional[Category], CategoryProvenance]:
    """Assign a category and record where it came from.

    An explicit provider mapping always wins over the amount-sign heuristic.
    Outflows without a rule stay uncategorized.
    """
    category = lookup_provider_category(raw.provider, raw.provider_category)
    if category is not None:
        return category, CategoryProvenance.PROVIDER_RULE

    if amount > 0:
        return Category.INCOME, CategoryProvenance.AMOUNT_HEURISTIC

    return None, CategoryProvenance.NONE


def normalize_transaction(
    raw: RawTransaction,
    account_id: UUID | str,
    *,
    default_currency: Optional[str] = None,
) -> NormalizedTransaction:
    """Shape one raw provider transaction into the canonical model.

    Raises
    ------
    RecordValidationError
        If the record lacks an external id or carries an unusable amount,
        currency or date.
    """
    external_id = (raw.external_id or "").strip()
    if not external_id:
        msg = "Transaction has no external id"
        raise RecordValidationError(msg, field="external_id")

    currency = parse_currency(raw.currency or default_currency, external_id)
    amount = normalize_sign(parse_amount(raw.amount, currency, external_id), raw)
    booked_on = parse_booking_date(raw.booked_on, external_id)
    category, provenance = categorize(raw, amount)

    description = (raw.description or raw.counterparty_name or "").strip()
    counterparty = (raw.counterparty_name or "").strip() or None

    return NormalizedTransaction(
        account_id=account_id,
        idempotency_key=derive_idempotency_key(account_id, external_id),
        external_id=external_id,
        amount=amount,
        currency=currency,
        booked_on=booked_on,
        description=description,
        counterparty_name=counterparty,
        category=category,
        category_provenance=provenance,
        status=TransactionStatus.PENDING if raw.pending else TransactionStatus.POSTED,
    )


def normalize_account(raw: RawAccount) -> NormalizedAccount:
    external_id = (raw.external_id or "").strip()
    if not external_id:
        msg = "Account has no external id"
        raise RecordValidationError(msg, field="external_id")

    currency = parse_currency(raw.currency, external_id)
    balance = None
    if raw.balance is not None:
        balance = parse_amount(raw.balance, currency, external_id)

    return NormalizedAccount(
        external_id=external_id,
        name=(raw.name or "").strip() or external_id,
        currency=currency,
        account_type=_map_account_type(raw.account_type, raw.account_subtype),
        balance=balance,
    )


def _map_account_type(
    account_type: Optional[str],
    account_subtype: Optional[str],
) -> AccountType:
    for candidate in (account_type, account_subtype):
        if candidate:
            mapped = _ACCOUNT_TYPE_ALIASES.get(candidate.strip().lower())
            if mapped is not None:
                return mapped
    return AccountType.OTHER


@dataclass(frozen=True)
class SkippedRecord:
    external_id: Optional[str]
    reason: str


@dataclass
class NormalizationBatch:
    """Result of normalizing a batch of raw transactions."""

    transactions: list[NormalizedTransaction] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)


def normalize_batch(
    raws: Iterable[RawTransaction],
    account_id: UUID | str,
    *,
    default_currency: Optional[str] = None,
) -> NormalizationBatch:
    """Normalize a batch, skipping malformed records.

    Records resolving to the same idempotency key are collapsed; the last
    occurrence wins since providers send updated versions later.
    """
    by_key: dict[str, NormalizedTransaction] = {}
    skipped: list[SkippedRecord] = []

    for raw in raws:
        try:
            normalized = normalize_transaction(
                raw,
                account_id,
                default_currency=default_currency,
            )
        except RecordValidationError as e:
            logger.warning(
                "Skipping malformed %s transaction %s for account %s: %s",
                raw.provider.value,
                raw.external_id,
                account_id,
                e.message,
            )
            skipped.append(SkippedRecord(external_id=raw.external_id, reason=e.message))
            continue
        by_key[normalized.idempotency_key] = normalized

    return NormalizationBatch(transactions=list(by_key.values()), skipped=skipped)
