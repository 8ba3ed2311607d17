"""API routers."""

from finsync.presentation.api.routers.connections import router as connections_router
from finsync.presentation.api.routers.providers import router as providers_router
from finsync.presentation.api.routers.sync_jobs import router as sync_jobs_router
from finsync.presentation.api.routers.transactions import (
    accounts_router,
    transactions_router,
)
from finsync.presentation.api.routers.webhooks import router as webhooks_router

__all__ = [
    "accounts_router",
    "connections_router",
    "providers_router",
    "sync_jobs_router",
    "transactions_router",
    "webhooks_router",
]
