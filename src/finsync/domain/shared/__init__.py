"""Shared domain building blocks."""

from finsync.domain.shared.exceptions import (
    AuthenticationError,
    BusinessRuleViolation,
    ConfigurationError,
    ConflictError,
    DomainException,
    EntityNotFoundError,
    ErrorCode,
    ValidationError,
)
from finsync.domain.shared.time import Clock, ensure_tz_aware, today_utc, utc_now

__all__ = [
    "AuthenticationError",
    "BusinessRuleViolation",
    "Clock",
    "ConfigurationError",
    "ConflictError",
    "DomainException",
    "EntityNotFoundError",
    "ErrorCode",
    "ValidationError",
    "ensure_tz_aware",
    "today_utc",
    "utc_now",
]
