"""Normalization exceptions."""

from __future__ import annotations

from finsync.domain.shared.exceptions import ErrorCode, ValidationError


class RecordValidationError(ValidationError):
    """A provider record is malformed and cannot be normalized.

    The record is skipped; the rest of the batch continues.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_RECORD,
        external_id: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            details={"external_id": external_id, "field": field},
        )
        self.external_id = external_id
        self.field = field
