"""Value objects for banking domain."""

from finsync.domain.banking.value_objects.connection import (
    Account,
    AccountType,
    Connection,
    ConnectionStatus,
)
from finsync.domain.banking.value_objects.provider_kind import ProviderKind
from finsync.domain.banking.value_objects.raw_records import (
    CreditDebit,
    ProviderHealth,
    RawAccount,
    RawTransaction,
    TransactionPage,
)

__all__ = [
    "Account",
    "AccountType",
    "Connection",
    "ConnectionStatus",
    "CreditDebit",
    "ProviderHealth",
    "ProviderKind",
    "RawAccount",
    "RawTransaction",
    "TransactionPage",
]
