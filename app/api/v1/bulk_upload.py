"""Bulk account upload: CSV/Excel ingestion, batch status, batch history, format template."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.models.user import ROLE_ADMIN, ROLE_MANAGER, ROLE_SUPER_ADMIN
from app.schemas.auth import CurrentUser
from app.schemas.bulk_upload import BulkUploadEnvelope
from app.services import bulk_upload as bulk_service
from app.services.audit import AuditSink, get_audit_sink
from app.services.tabular import TabularFileError, is_allowed_upload

router = APIRouter()

HISTORY_ALL_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_MANAGER})


def _envelope_response(status_code: int, envelope: BulkUploadEnvelope) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json", by_alias=True))


def _failure(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    return _envelope_response(
        status_code, BulkUploadEnvelope(success=False, message=message, error=error)
    )


@router.post("/upload", response_model=BulkUploadEnvelope)
def upload_accounts(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
    file: Annotated[UploadFile | None, File()] = None,
    batch_name: Annotated[str | None, Form(alias="batchName", max_length=255)] = None,
    skip_errors: Annotated[bool, Form(alias="skipErrors")] = False,
    update_existing: Annotated[bool, Form(alias="updateExisting")] = False,
):
    """
    Upload a CSV or Excel file of accounts (multipart field `file`).

    - **batchName**: optional label for the batch.
    - **skipErrors**: keep going past invalid rows; when false the first invalid
      row aborts the batch and rolls back every account it wrote.
    - **updateExisting**: overwrite accounts whose account number already exists
      instead of counting them as duplicates.

    Returns the persisted batch summary with per-row errors.
    """
    if file is None:
        return _failure(status.HTTP_400_BAD_REQUEST, "No file uploaded")
    filename = file.filename or ""
    if not is_allowed_upload(filename, file.content_type):
        return _failure(
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            "Invalid file type. Only CSV and Excel files are allowed.",
        )
    max_bytes = settings.BULK_UPLOAD_MAX_BYTES
    data = file.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        return _failure(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File size must not exceed {max_bytes // (1024 * 1024)} MB.",
        )

    upload = bulk_service.UploadedFile(filename=filename, content_type=file.content_type, data=data)
    options = bulk_service.BulkUploadOptions(
        batch_name=(batch_name or "").strip() or None,
        skip_errors=skip_errors,
        update_existing=update_existing,
    )
    try:
        result = bulk_service.process_upload(
            db, upload, current_user.id, options, settings, audit=audit
        )
    except TabularFileError as e:
        return _failure(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            f"Upload processing failed: {e.message}",
            error=type(e).__name__,
        )
    except SQLAlchemyError:
        return _failure(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Upload processing failed",
            error="DatabaseError",
        )

    return _envelope_response(
        status.HTTP_200_OK,
        BulkUploadEnvelope(
            success=True,
            message=result.message,
            data=result.model_dump(mode="json", by_alias=True),
        ),
    )


@router.get("/batch/{batch_id}", response_model=BulkUploadEnvelope)
def get_batch(
    batch_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Status and counters of one batch. 404 if the id is unknown."""
    try:
        result = bulk_service.get_batch_status(db, batch_id)
    except bulk_service.BatchNotFoundError as e:
        return _failure(status.HTTP_404_NOT_FOUND, e.message)
    return BulkUploadEnvelope(success=True, data=result.model_dump(mode="json", by_alias=True))


@router.get("/history", response_model=BulkUploadEnvelope)
def get_history(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = 10,
    all_batches: Annotated[bool, Query(alias="all")] = False,
) -> BulkUploadEnvelope:
    """
    Batch history, newest first. By default only the caller's batches;
    `all=true` lists every batch and needs a manager or admin role.
    """
    if all_batches and current_user.role not in HISTORY_ALL_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    limit = min(limit, settings.BULK_UPLOAD_HISTORY_MAX_LIMIT)
    history = bulk_service.get_batch_history(
        db,
        user_id=None if all_batches else current_user.id,
        page=page,
        limit=limit,
    )
    return BulkUploadEnvelope(success=True, data=history.model_dump(mode="json", by_alias=True))


@router.get("/template", response_model=BulkUploadEnvelope)
def get_template(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> BulkUploadEnvelope:
    """Column list, allowed values and a sample CSV for building upload files."""
    return BulkUploadEnvelope(success=True, data=bulk_service.upload_template())
