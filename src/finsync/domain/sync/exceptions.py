"""Sync domain exceptions."""

from __future__ import annotations

from finsync.domain.shared.exceptions import (
    BusinessRuleViolation,
    ConflictError,
    EntityNotFoundError,
    ErrorCode,
)


class InvalidJobTransitionError(ConflictError):
    def __init__(self, job_id: object, current: str, target: str) -> None:
        super().__init__(
            message=f"Sync job '{job_id}' cannot move from {current} to {target}",
            code=ErrorCode.INVALID_JOB_TRANSITION,
            details={"job_id": str(job_id), "from": current, "to": target},
        )
        self.current = current
        self.target = target


class SyncJobNotFoundError(EntityNotFoundError):
    def __init__(self, job_id: object | None = None) -> None:
        super().__init__(
            message=f"Sync job '{job_id}' not found",
            code=ErrorCode.SYNC_JOB_NOT_FOUND,
            details={"job_id": str(job_id)},
        )


class JobCancelledError(ConflictError):
    """Raised at a pipeline checkpoint once cancellation was requested."""

    def __init__(self, reason: str = "Sync job was cancelled") -> None:
        super().__init__(message=reason, code=ErrorCode.SYNC_JOB_CANCELLED)


class ConnectionNotActiveError(BusinessRuleViolation):
    def __init__(self, connection_id: object, status: str) -> None:
        super().__init__(
            message=(
                f"Connection '{connection_id}' is {status}; "
                "re-authorize it before syncing"
            ),
            code=ErrorCode.CONNECTION_NOT_ACTIVE,
            details={"connection_id": str(connection_id), "status": status},
        )
