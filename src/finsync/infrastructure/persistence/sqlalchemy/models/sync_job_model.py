"""SQLAlchemy model for sync job records."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.infrastructure.persistence.sqlalchemy.models.base import (
    Base,
    TimestampMixin,
)


class SyncJobModel(Base, TimestampMixin):
    __tablename__ = "sync_jobs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    connection_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column()
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(index=True)

    scope: Mapped[str] = mapped_column(String(20), nullable=False)
    full_history: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_error_kind: Mapped[Optional[str]] = mapped_column(String(20))
    last_error: Mapped[Optional[str]] = mapped_column(Text)
    next_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    transactions_upserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transactions_new: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accounts_succeeded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accounts_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_sync_job_tenant", "tenant_id", "id"),)

    def __repr__(self) -> str:
        return f"<SyncJobModel(id={self.id}, scope={self.scope}, state={self.state})>"
