"""SQLAlchemy model for provider connections."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.infrastructure.persistence.sqlalchemy.models.base import (
    Base,
    TimestampMixin,
)


class ConnectionModel(Base, TimestampMixin):
    """Database model for connections.

    Rows are never deleted; status moves to disconnected/expired instead.
    """

    __tablename__ = "connections"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)

    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_reference: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Provider-assigned link id, used to resolve webhooks",
    )
    credential_ref: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Opaque access token or session id",
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_error: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index(
            "idx_connection_provider_reference",
            "provider",
            "provider_reference",
            unique=True,
        ),
        Index("idx_connection_tenant_status", "tenant_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ConnectionModel(id={self.id}, provider={self.provider}, "
            f"status={self.status})>"
        )
