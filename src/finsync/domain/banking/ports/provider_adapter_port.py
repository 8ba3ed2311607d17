"""Provider adapter port interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from finsync.domain.banking.value_objects import (
        Account,
        Connection,
        ProviderHealth,
        ProviderKind,
        RawAccount,
        TransactionPage,
    )


class ProviderAdapter(ABC):
    """
    Interface every external banking provider is accessed through.

    One flat capability set; each provider is a leaf implementation.
    Implementations translate provider payloads into raw records and
    provider failures into the errors in ``finsync.domain.banking.exceptions``.
    """

    kind: ProviderKind

    @abstractmethod
    async def fetch_accounts(self, connection: Connection) -> list[RawAccount]:
        """
        Fetch all accounts visible through a connection.

        Parameters
        ----------
        connection
            The connection whose credential reference is used for auth

        Returns
        -------
        List of raw account records

        Raises
        ------
        ProviderError
            One of the provider error taxonomy subclasses
        """

    @abstractmethod
    async def fetch_transactions(
        self,
        connection: Connection,
        account: Account,
        cursor: Optional[str] = None,
        *,
        full_history: bool = False,
    ) -> TransactionPage:
        """
        Fetch one page of transactions for an account.

        Parameters
        ----------
        connection
            The connection the account belongs to
        account
            Account to fetch; its external id addresses the provider account
        cursor
            Opaque cursor returned with the previous page, None for the first
        full_history
            True requests the multi-year lookback, False the short
            "latest" window. Always supplied by the caller.

        Returns
        -------
        A page of raw transactions and the cursor of the next page
        (None when there are no more pages)

        Raises
        ------
        ProviderError
            One of the provider error taxonomy subclasses
        """

    @abstractmethod
    async def healthcheck(self) -> ProviderHealth:
        """Report whether the provider API is reachable."""

    async def close(self) -> None:
        """Release network resources held by the adapter."""
