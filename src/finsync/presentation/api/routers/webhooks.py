"""Provider webhook receiver.

No identity token here: provider callbacks authenticate with their own
signature scheme, checked before anything touches the database.
"""

from fastapi import APIRouter, Request

from finsync.presentation.api.dependencies import Container
from finsync.presentation.api.schemas import WebhookResponse

router = APIRouter()


@router.post(
    "/{provider}",
    summary="Receive a provider webhook",
    responses={
        401: {"description": "Signature verification failed"},
        404: {"description": "Provider has no webhook support configured"},
    },
)
async def receive_webhook(
    provider: str,
    request: Request,
    container: Container,
) -> WebhookResponse:
    body = await request.body()
    outcome = await container.triggers.handle_webhook(provider, request.headers, body)
    return WebhookResponse(
        action=outcome.action,
        connection_id=outcome.connection_id,
        job_id=outcome.job_id,
    )
