"""Normalization & categorization engine."""

from finsync.domain.normalization.exceptions import RecordValidationError
from finsync.domain.normalization.normalization_service import (
    NormalizationBatch,
    SkippedRecord,
    categorize,
    derive_idempotency_key,
    normalize_account,
    normalize_batch,
    normalize_sign,
    normalize_transaction,
)
from finsync.domain.normalization.normalized_records import (
    Category,
    CategoryProvenance,
    NormalizedAccount,
    NormalizedTransaction,
    TransactionStatus,
)

__all__ = [
    "Category",
    "CategoryProvenance",
    "NormalizationBatch",
    "NormalizedAccount",
    "NormalizedTransaction",
    "RecordValidationError",
    "SkippedRecord",
    "TransactionStatus",
    "categorize",
    "derive_idempotency_key",
    "normalize_account",
    "normalize_batch",
    "normalize_sign",
    "normalize_transaction",
]
