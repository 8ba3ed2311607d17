"""Banking domain exceptions.

Provider adapters translate every provider-specific failure into one of a
small, closed set of errors. The orchestrator only ever reasons about these.
"""

from __future__ import annotations

from typing import Optional

from finsync.domain.shared.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DomainException,
    EntityNotFoundError,
    ErrorCode,
)

# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(DomainException):
    """Base exception for failures reported by an external banking provider."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        provider: str | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            details={"provider": provider, "provider_code": provider_code},
        )
        self.provider = provider
        self.provider_code = provider_code


class ProviderDisconnectedError(ProviderError):
    """The link is no longer usable; the user has to re-authorize.

    ``expired`` distinguishes lapsed consent from other disconnections.
    """

    def __init__(
        self,
        message: str = "Provider connection requires re-authorization",
        provider: str | None = None,
        provider_code: str | None = None,
        expired: bool = False,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.PROVIDER_DISCONNECTED,
            provider=provider,
            provider_code=provider_code,
        )
        self.expired = expired


class ProviderRateLimitedError(ProviderError):
    """The provider throttled us. ``retry_after`` is its suggested delay."""

    def __init__(
        self,
        message: str = "Provider rate limit exceeded",
        provider: str | None = None,
        provider_code: str | None = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.PROVIDER_RATE_LIMITED,
            provider=provider,
            provider_code=provider_code,
        )
        self.retry_after = retry_after


class ProviderTransientError(ProviderError):
    """Temporary failure (timeouts, outages); retried with standard backoff."""

    def __init__(
        self,
        message: str = "Provider temporarily unavailable",
        provider: str | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.PROVIDER_UNAVAILABLE,
            provider=provider,
            provider_code=provider_code,
        )


class ProviderUnknownError(ProviderError):
    """Anything the adapter could not classify."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class UnsupportedProviderError(ConfigurationError):
    """Raised when no adapter is registered for a provider kind."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            message=f"No adapter registered for provider '{provider}'",
            code=ErrorCode.UNSUPPORTED_PROVIDER,
            details={"provider": provider},
        )
        self.provider = provider


# =============================================================================
# Lookup Exceptions
# =============================================================================


class ConnectionNotFoundError(EntityNotFoundError):
    def __init__(self, connection_id: object | None = None) -> None:
        super().__init__(
            message=f"Connection '{connection_id}' not found",
            code=ErrorCode.CONNECTION_NOT_FOUND,
            details={"connection_id": str(connection_id)},
        )


class AccountNotFoundError(EntityNotFoundError):
    def __init__(self, account_id: object | None = None) -> None:
        super().__init__(
            message=f"Account '{account_id}' not found",
            code=ErrorCode.ACCOUNT_NOT_FOUND,
            details={"account_id": str(account_id)},
        )


class TransactionNotFoundError(EntityNotFoundError):
    def __init__(self, transaction_id: object | None = None) -> None:
        super().__init__(
            message=f"Transaction '{transaction_id}' not found",
            code=ErrorCode.TRANSACTION_NOT_FOUND,
            details={"transaction_id": str(transaction_id)},
        )


# =============================================================================
# Webhook Exceptions
# =============================================================================


class WebhookAuthenticationError(AuthenticationError):
    """A provider callback failed signature verification."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(
            message="Webhook signature verification failed",
            code=ErrorCode.WEBHOOK_AUTHENTICATION_FAILED,
            details={"provider": provider, "reason": reason},
        )
        self.provider = provider
        self.reason = reason
