"""Provider adapters and the provider router."""

from finsync.infrastructure.providers.enablebanking import EnableBankingAdapter
from finsync.infrastructure.providers.gocardless import GoCardlessAdapter
from finsync.infrastructure.providers.http_base import HttpProviderAdapter
from finsync.infrastructure.providers.plaid import PlaidAdapter
from finsync.infrastructure.providers.router import (
    ProviderRouter,
    build_provider_router,
)
from finsync.infrastructure.providers.teller import TellerAdapter

__all__ = [
    "EnableBankingAdapter",
    "GoCardlessAdapter",
    "HttpProviderAdapter",
    "PlaidAdapter",
    "ProviderRouter",
    "TellerAdapter",
    "build_provider_router",
]
