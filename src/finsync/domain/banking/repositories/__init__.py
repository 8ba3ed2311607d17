"""Repository interfaces for the banking domain."""

from finsync.domain.banking.repositories.account_repository import AccountRepository
from finsync.domain.banking.repositories.connection_repository import (
    ConnectionRepository,
)
from finsync.domain.banking.repositories.transaction_repository import (
    StoredTransaction,
    TransactionRepository,
    UpsertResult,
)

__all__ = [
    "AccountRepository",
    "ConnectionRepository",
    "StoredTransaction",
    "TransactionRepository",
    "UpsertResult",
]
