"""Shared utilities for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.domain.normalization.money import minor_units
from finsync.domain.shared.exceptions import ConfigurationError
from finsync.domain.shared.time import ensure_tz_aware

# SQLite caps bound parameters per statement; keep multi-row statements small
UPSERT_CHUNK_SIZE = 200


def ensure_uuid(value: UUID | str | None) -> UUID | None:
    """
    Ensure a value is a UUID, converting from string if necessary.

    Account ids flow through normalization as either a UUID or its string
    representation.
    """
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        return UUID(value)
    msg = f"Expected UUID or str, got {type(value).__name__}"
    raise TypeError(msg)


def aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    return ensure_tz_aware(value)


def dialect_insert(session: AsyncSession, table: Any):
    """INSERT construct supporting ``on_conflict_do_update`` for the bound dialect."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    msg = f"Upserts are not supported on database dialect '{dialect}'"
    raise ConfigurationError(msg)


def chunked(items: list, size: int = UPSERT_CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start : start + size]


def to_minor_units(amount: Optional[Decimal], currency: str) -> Optional[Decimal]:
    """Re-quantize a stored amount to its currency's minor unit."""
    if amount is None:
        return None
    return Decimal(amount).quantize(Decimal(1).scaleb(-minor_units(currency)))
