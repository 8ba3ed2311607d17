"""FastAPI dependency injection for the finsync API.

Provides dependencies for:
- The service container (set on ``app.state`` by the lifespan)
- The current tenant (from the identity assertion bearer token)
"""

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from finsync.infrastructure.container import ServiceContainer

logger = logging.getLogger(__name__)

# Security scheme for identity bearer tokens
security = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """Return the container the application was started with."""
    return request.app.state.container


Container = Annotated[ServiceContainer, Depends(get_container)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_tenant(
    container: Container,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> UUID:
    """
    Resolve the tenant from a verified identity assertion.

    Tokens are issued by the external auth service; this API only checks
    the signature and reads the tenant claim.

    Raises
    ------
    HTTPException
        401 if the token is missing, invalid, expired or has no tenant
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    settings = container.settings
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.identity_jwt_secret.get_secret_value(),
            algorithms=[settings.identity_jwt_algorithm],
            options={"verify_aud": False},
        )
    except jwt.PyJWTError as e:
        logger.warning("Invalid identity token: %s", e)
        raise _unauthorized("Invalid or expired token") from e

    raw_tenant = payload.get(settings.identity_tenant_claim)
    try:
        return UUID(str(raw_tenant))
    except ValueError as e:
        logger.warning("Identity token without a usable tenant claim")
        raise _unauthorized("Token carries no tenant") from e


# Type alias for injected tenant id
CurrentTenant = Annotated[UUID, Depends(get_current_tenant)]
