"""Provider health endpoint."""

from fastapi import APIRouter

from finsync.presentation.api.dependencies import Container
from finsync.presentation.api.schemas import (
    ProviderHealthResponse,
    ProvidersHealthResponse,
)

router = APIRouter()


@router.get("/health", summary="Check registered providers")
async def providers_health(container: Container) -> ProvidersHealthResponse:
    results = await container.providers.healthcheck()
    return ProvidersHealthResponse(
        providers=[
            ProviderHealthResponse(provider=r.provider, healthy=r.healthy, detail=r.detail)
            for r in results
        ],
        healthy=all(r.healthy for r in results),
    )
