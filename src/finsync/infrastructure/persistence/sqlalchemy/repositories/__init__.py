"""SQLAlchemy repository implementations."""

from finsync.infrastructure.persistence.sqlalchemy.repositories.account_repository import (  # NOQA: E501
    AccountRepositorySQLAlchemy,
)
from finsync.infrastructure.persistence.sqlalchemy.repositories.connection_repository import (  # NOQA: E501
    ConnectionRepositorySQLAlchemy,
)
from finsync.infrastructure.persistence.sqlalchemy.repositories.sync_job_repository import (  # NOQA: E501
    SyncJobRepositorySQLAlchemy,
)
from finsync.infrastructure.persistence.sqlalchemy.repositories.transaction_repository import (  # NOQA: E501
    TransactionRepositorySQLAlchemy,
)

__all__ = [
    "AccountRepositorySQLAlchemy",
    "ConnectionRepositorySQLAlchemy",
    "SyncJobRepositorySQLAlchemy",
    "TransactionRepositorySQLAlchemy",
]
