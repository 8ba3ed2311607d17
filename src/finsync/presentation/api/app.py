"""FastAPI application factory.

API Versioning:
    All API endpoints are versioned under /api/v1/ prefix.
    The health check endpoint remains unversioned at /health.
"""

import logging
import sys
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finsync.infrastructure.container import ServiceContainer, build_container
from finsync.infrastructure.persistence.sqlalchemy.init_db import create_tables
from finsync.presentation.api.exception_handlers import setup_exception_handlers
from finsync.presentation.api.routers import (
    accounts_router,
    connections_router,
    providers_router,
    sync_jobs_router,
    transactions_router,
    webhooks_router,
)
from finsync_config.settings import Settings, get_settings


@lru_cache(maxsize=1)
def configure_logging() -> None:
    """Configure application logging.

    Console output with timestamps and module names, the finsync level
    from settings, and WARNING for noisy third-party libraries.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    logging.getLogger("finsync").setLevel(log_level)
    logging.getLogger("finsync_config").setLevel(log_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
API_V1_PREFIX = "/api/v1"

OPENAPI_TAGS = [
    {
        "name": "Connections",
        "description": "Provider connections and manual sync triggers.",
    },
    {
        "name": "Transactions",
        "description": """Normalized transactions.

Positive amounts are inflows. `category_provenance` tells apart explicit
provider mappings (`provider_rule`), tentative guesses (`amount_heuristic`)
and manual overrides (`user`).
""",
    },
    {
        "name": "Sync Jobs",
        "description": "Status of connection-level and account-level sync jobs.",
    },
    {
        "name": "Webhooks",
        "description": "Signed provider callbacks (Plaid, Teller).",
    },
    {
        "name": "Providers",
        "description": "Registered banking providers.",
    },
    {
        "name": "Health",
        "description": "Service health monitoring endpoints.",
    },
]


def create_v1_router() -> APIRouter:
    """Create the v1 API router with all endpoints."""
    v1 = APIRouter(prefix=API_V1_PREFIX)
    v1.include_router(connections_router, prefix="/connections", tags=["Connections"])
    v1.include_router(accounts_router, prefix="/accounts", tags=["Transactions"])
    v1.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    v1.include_router(sync_jobs_router, prefix="/sync-jobs", tags=["Sync Jobs"])
    v1.include_router(webhooks_router, prefix="/webhooks", tags=["Webhooks"])
    v1.include_router(providers_router, prefix="/providers", tags=["Providers"])
    return v1


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
    init_schema: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    settings
        Defaults to the cached environment settings
    container
        Pre-built services (tests); built from settings on startup otherwise
    init_schema
        Create missing tables on startup
    """
    configure_logging()
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting finsync API v%s...", API_VERSION)
        services = container or build_container(settings)
        if init_schema:
            await create_tables(services.database.primary_engine)
        await services.startup()
        app.state.container = services
        yield

        logger.info("Shutting down finsync API...")
        await services.shutdown()

    app = FastAPI(
        title="finsync API",
        version=API_VERSION,
        description="Multi-provider bank data ingestion.",
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    setup_exception_handlers(app)
    app.include_router(create_v1_router())

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": API_VERSION}

    return app
