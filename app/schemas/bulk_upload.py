"""Request/response schemas for the bulk upload endpoints."""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from app.schemas.base import CamelModel

BatchStatus = Literal["processing", "completed", "failed"]


class BulkUploadRowError(CamelModel):
    """One row-level problem: 1-based row number (0 for batch-level), field, message."""

    row: int = Field(..., ge=0)
    field: str | None = None
    message: str


class UploaderSummary(CamelModel):
    """Who uploaded a batch."""

    id: int
    first_name: str = ""
    last_name: str = ""
    email: str


class BulkUploadResult(CamelModel):
    """Aggregate outcome of one batch."""

    batch_id: str
    batch_name: str = ""
    status: BatchStatus
    total_records: int = Field(..., ge=0)
    successful_records: int = Field(..., ge=0)
    failed_records: int = Field(..., ge=0)
    duplicates: int = Field(..., ge=0)
    errors: list[BulkUploadRowError] = Field(default_factory=list)
    message: str = ""
    rolled_back: bool = False
    original_filename: str = ""
    uploaded_by_id: int | None = None
    uploaded_by: UploaderSummary | None = None
    created_at: datetime | None = None
    processing_completed: datetime | None = None


class BatchHistory(CamelModel):
    """One page of batch history, newest first."""

    batches: list[BulkUploadResult]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    pages: int = Field(..., ge=0)


class BulkUploadEnvelope(CamelModel):
    """Response envelope shared by the bulk upload endpoints."""

    success: bool
    message: str | None = None
    data: Any = None
    error: str | None = None
