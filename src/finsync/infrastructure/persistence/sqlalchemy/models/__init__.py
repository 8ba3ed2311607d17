"""SQLAlchemy models for persistence layer."""

from finsync.infrastructure.persistence.sqlalchemy.models.account_model import (
    AccountModel,
)
from finsync.infrastructure.persistence.sqlalchemy.models.base import Base
from finsync.infrastructure.persistence.sqlalchemy.models.connection_model import (
    ConnectionModel,
)
from finsync.infrastructure.persistence.sqlalchemy.models.sync_job_model import (
    SyncJobModel,
)
from finsync.infrastructure.persistence.sqlalchemy.models.transaction_model import (
    TransactionModel,
)

__all__ = [
    "Base",
    "AccountModel",
    "ConnectionModel",
    "SyncJobModel",
    "TransactionModel",
]
