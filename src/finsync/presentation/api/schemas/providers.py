"""Provider health schemas."""

from typing import Optional

from pydantic import BaseModel

from finsync.domain.banking.value_objects import ProviderKind


class ProviderHealthResponse(BaseModel):
    provider: ProviderKind
    healthy: bool
    detail: Optional[str] = None


class ProvidersHealthResponse(BaseModel):
    providers: list[ProviderHealthResponse]
    healthy: bool
