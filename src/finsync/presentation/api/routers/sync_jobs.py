"""Sync job status and cancellation."""

from uuid import UUID

from fastapi import APIRouter, status

from finsync.domain.sync import SyncJobNotFoundError
from finsync.presentation.api.dependencies import Container, CurrentTenant
from finsync.presentation.api.schemas import CancelResponse, SyncJobResponse

router = APIRouter()


@router.get(
    "/{job_id}",
    summary="Get sync job status",
    responses={404: {"description": "Sync job not found"}},
)
async def get_sync_job(
    job_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
) -> SyncJobResponse:
    """Connection-level jobs include their account-level jobs."""
    job = await container.jobs.get(tenant_id, job_id)
    if job is None:
        raise SyncJobNotFoundError(job_id)
    children = await container.jobs.list_by_parent(tenant_id, job_id)
    return SyncJobResponse.from_job(job, children)


@router.post(
    "/{job_id}/cancel",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel a running sync job",
    responses={404: {"description": "Sync job not found"}},
)
async def cancel_sync_job(
    job_id: UUID,
    tenant_id: CurrentTenant,
    container: Container,
) -> CancelResponse:
    """
    Request cooperative cancellation.

    Work stops at the next stage boundary; data already written stays.
    """
    job = await container.jobs.get(tenant_id, job_id)
    if job is None:
        raise SyncJobNotFoundError(job_id)
    requested = False
    if not job.is_terminal:
        requested = container.dispatcher.cancel(job.id, "Cancelled by user")
    return CancelResponse(job_id=job.id, cancellation_requested=requested)
