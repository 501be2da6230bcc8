"""Bulk account ingestion: parse, validate, reconcile against existing accounts, record the batch."""

from __future__ import annotations

import logging
import math
import time
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.models.upload_batch import (
    BATCH_STATUS_COMPLETED,
    BATCH_STATUS_FAILED,
    BATCH_STATUS_PROCESSING,
    TERMINAL_BATCH_STATUSES,
    UploadBatch,
)
from app.schemas.bulk_upload import (
    BatchHistory,
    BulkUploadResult,
    BulkUploadRowError,
    UploaderSummary,
)
from app.services.accounts import (
    AccountConflictError,
    account_exists,
    create_account,
    update_account,
)
from app.services.audit import EVENT_BULK_UPLOAD, OUTCOME_FAILURE, OUTCOME_SUCCESS, AuditSink, emit
from app.services.row_validation import (
    ACCOUNT_PRIORITIES,
    ACCOUNT_STATUSES,
    CONTACT_METHODS,
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    is_blank_row,
    validate_row,
)
from app.services.tabular import TabularFileError, detect_format, iter_rows, write_csv_rows

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "created"
OUTCOME_UPDATED = "updated"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_FAILED = "failed"


class BulkUploadError(Exception):
    """Pipeline-level failure (the batch as a whole cannot be processed)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BatchNotFoundError(BulkUploadError):
    """No batch with the requested id."""


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class BulkUploadOptions:
    batch_name: str | None = None
    # False: the first failing row aborts the batch and rolls back its account writes.
    skip_errors: bool = False
    # True: an existing account number updates that account instead of counting as a duplicate.
    update_existing: bool = False


@dataclass(frozen=True)
class RowOutcome:
    """What happened to one non-blank row."""

    row: int
    kind: str
    errors: tuple[BulkUploadRowError, ...] = ()


@dataclass
class _Tally:
    total: int = 0
    successful: int = 0
    failed: int = 0
    duplicates: int = 0
    errors: list[BulkUploadRowError] = field(default_factory=list)

    def add(self, outcome: RowOutcome) -> None:
        self.total += 1
        if outcome.kind in (OUTCOME_CREATED, OUTCOME_UPDATED):
            self.successful += 1
        elif outcome.kind == OUTCOME_DUPLICATE:
            self.duplicates += 1
        else:
            self.failed += 1
            self.errors.extend(outcome.errors)


class _Budget:
    """Stops feeding rows once the row count or wall-clock budget is spent."""

    def __init__(self, max_rows: int, timeout_sec: float) -> None:
        self.max_rows = max_rows
        self.timeout_sec = timeout_sec
        self.deadline = time.monotonic() + timeout_sec
        self.exceeded: str | None = None

    def guard(self, rows: Iterable[dict[str, Any]]) -> Iterator[dict[str, Any]]:
        seen = 0
        for row in rows:
            if is_blank_row(row):
                yield row
                continue
            if seen >= self.max_rows:
                self.exceeded = f"Row limit of {self.max_rows} exceeded; remaining rows were not processed"
                return
            if time.monotonic() > self.deadline:
                self.exceeded = (
                    f"Processing time limit of {self.timeout_sec:g}s exceeded; "
                    "remaining rows were not processed"
                )
                return
            seen += 1
            yield row


def new_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex}"


def iter_row_outcomes(
    db: Session,
    rows: Iterable[dict[str, Any]],
    batch_id: str,
    update_existing: bool,
) -> Iterator[RowOutcome]:
    """
    Validate and apply rows one at a time, yielding an outcome per non-blank row.

    Rows are numbered from 1 in file order (header excluded); blank rows are
    skipped but keep their number. Validation runs before the duplicate check,
    so an invalid row for an existing account is reported as a failure. The
    caller decides whether to keep pulling after a failure.
    """
    for row_number, row in enumerate(rows, start=1):
        if is_blank_row(row):
            continue
        validation = validate_row(row, row_number)
        if not validation.ok:
            yield RowOutcome(row=row_number, kind=OUTCOME_FAILED, errors=tuple(validation.errors))
            continue

        account_number = validation.data["account_number"]
        try:
            if account_exists(db, account_number):
                if not update_existing:
                    yield RowOutcome(row=row_number, kind=OUTCOME_DUPLICATE)
                    continue
                if update_account(db, validation.data, batch_id) is not None:
                    yield RowOutcome(row=row_number, kind=OUTCOME_UPDATED)
                    continue
            create_account(db, validation.data, batch_id)
        except AccountConflictError as e:
            error = BulkUploadRowError(row=row_number, field="accountNumber", message=e.message)
            yield RowOutcome(row=row_number, kind=OUTCOME_FAILED, errors=(error,))
            continue
        yield RowOutcome(row=row_number, kind=OUTCOME_CREATED)


def _summary(tally: _Tally) -> str:
    return (
        f"Processed {tally.total} records. {tally.successful} successful, "
        f"{tally.failed} failed, {tally.duplicates} duplicates."
    )


def _finalize(
    db: Session,
    batch: UploadBatch,
    tally: _Tally,
    status: str,
    message: str,
    rolled_back: bool = False,
) -> None:
    """Write the terminal state of the batch and commit (together with any pending account writes)."""
    if batch.status in TERMINAL_BATCH_STATUSES:
        raise BulkUploadError(f"Batch {batch.id} is already {batch.status}")
    batch.status = status
    batch.total_records = tally.total
    batch.successful_records = tally.successful
    batch.failed_records = tally.failed
    batch.duplicates = tally.duplicates
    batch.errors = [e.model_dump() for e in tally.errors]
    batch.message = message
    batch.rolled_back = rolled_back
    batch.processing_completed = datetime.now(UTC)
    db.commit()


def batch_to_result(batch: UploadBatch) -> BulkUploadResult:
    return BulkUploadResult(
        batch_id=batch.id,
        batch_name=batch.batch_name or "",
        status=batch.status,
        total_records=batch.total_records or 0,
        successful_records=batch.successful_records or 0,
        failed_records=batch.failed_records or 0,
        duplicates=batch.duplicates or 0,
        errors=[BulkUploadRowError.model_validate(e) for e in (batch.errors or [])],
        message=batch.message or "",
        rolled_back=bool(batch.rolled_back),
        original_filename=batch.original_filename or "",
        uploaded_by_id=batch.uploaded_by_id,
        uploaded_by=(
            UploaderSummary.model_validate(batch.uploaded_by) if batch.uploaded_by is not None else None
        ),
        created_at=batch.created_at,
        processing_completed=batch.processing_completed,
    )


def process_upload(
    db: Session,
    upload: UploadedFile,
    user_id: int | None,
    options: BulkUploadOptions,
    settings: Settings,
    audit: AuditSink | None = None,
) -> BulkUploadResult:
    """
    Ingest one uploaded file and return the persisted batch summary.

    The batch row is committed first with status processing. Account writes
    and the final batch state are committed together at the end. With
    skip_errors False the first failing row stops processing, every account
    write of the batch is rolled back and the batch ends failed. Exceeding the
    row or time budget ends the batch failed but keeps the rows already
    applied. Unsupported or unreadable files, and any other error, mark the
    batch failed (rolled_back when staged rows were discarded) and the
    exception is re-raised.
    """
    now = datetime.now(UTC)
    batch = UploadBatch(
        id=new_batch_id(),
        batch_name=options.batch_name or f"Upload {now.date().isoformat()}",
        original_filename=upload.filename or "",
        file_size=upload.size,
        mime_type=upload.content_type or "application/octet-stream",
        uploaded_by_id=user_id,
        status=BATCH_STATUS_PROCESSING,
        skip_errors=options.skip_errors,
        update_existing=options.update_existing,
        errors=[],
        message="Processing records...",
        created_at=now,
        processing_started=now,
    )
    db.add(batch)
    db.commit()

    tally = _Tally()
    budget = _Budget(settings.BULK_UPLOAD_MAX_ROWS, settings.BULK_UPLOAD_TIMEOUT_SEC)
    aborted_at: int | None = None
    try:
        file_format = detect_format(upload.filename, upload.content_type)
        rows = budget.guard(iter_rows(upload.data, file_format))
        for outcome in iter_row_outcomes(db, rows, batch.id, options.update_existing):
            tally.add(outcome)
            if outcome.kind == OUTCOME_FAILED and not options.skip_errors:
                aborted_at = outcome.row
                break
    except TabularFileError as e:
        db.rollback()
        tally.errors.append(BulkUploadRowError(row=0, field=None, message=e.message))
        _finalize(
            db,
            batch,
            tally,
            BATCH_STATUS_FAILED,
            f"Upload processing failed: {e.message}",
            rolled_back=tally.successful > 0,
        )
        emit(audit, EVENT_BULK_UPLOAD, OUTCOME_FAILURE, actor_id=user_id, batch_id=batch.id, reason=e.message)
        logger.warning(
            "Bulk upload rejected",
            extra={"batch_id": batch.id, "reason": e.message[:500]},
        )
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Bulk upload failed on a database error", extra={"batch_id": batch.id})
        try:
            tally.errors.append(BulkUploadRowError(row=0, field=None, message=str(e)[:500]))
            _finalize(
                db,
                batch,
                tally,
                BATCH_STATUS_FAILED,
                "Upload processing failed: database error",
                rolled_back=tally.successful > 0,
            )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not mark batch failed", extra={"batch_id": batch.id})
        emit(audit, EVENT_BULK_UPLOAD, OUTCOME_FAILURE, actor_id=user_id, batch_id=batch.id, reason="database")
        raise
    except Exception:
        # Any other error still has to leave the batch in a terminal state.
        db.rollback()
        logger.exception("Bulk upload failed unexpectedly", extra={"batch_id": batch.id})
        tally.errors.append(BulkUploadRowError(row=0, field=None, message="Unexpected processing error"))
        _finalize(
            db,
            batch,
            tally,
            BATCH_STATUS_FAILED,
            "Upload processing failed: unexpected error",
            rolled_back=tally.successful > 0,
        )
        emit(audit, EVENT_BULK_UPLOAD, OUTCOME_FAILURE, actor_id=user_id, batch_id=batch.id, reason="unexpected")
        raise

    if aborted_at is not None:
        db.rollback()
        message = (
            f"Aborted at row {aborted_at}. {_summary(tally)} "
            f"{tally.successful} staged record(s) rolled back."
        )
        _finalize(db, batch, tally, BATCH_STATUS_FAILED, message, rolled_back=True)
    elif budget.exceeded is not None:
        tally.errors.append(BulkUploadRowError(row=0, field=None, message=budget.exceeded))
        _finalize(db, batch, tally, BATCH_STATUS_FAILED, f"{_summary(tally)} {budget.exceeded}.")
    else:
        _finalize(db, batch, tally, BATCH_STATUS_COMPLETED, _summary(tally))

    result = batch_to_result(batch)
    emit(
        audit,
        EVENT_BULK_UPLOAD,
        OUTCOME_SUCCESS if result.status == BATCH_STATUS_COMPLETED else OUTCOME_FAILURE,
        actor_id=user_id,
        batch_id=result.batch_id,
        total=result.total_records,
        successful=result.successful_records,
        failed=result.failed_records,
        duplicates=result.duplicates,
    )
    logger.info(
        "Bulk upload finished",
        extra={
            "batch_id": result.batch_id,
            "status": result.status,
            "total_records": result.total_records,
            "successful_records": result.successful_records,
            "failed_records": result.failed_records,
            "duplicates": result.duplicates,
        },
    )
    return result


def get_batch_status(db: Session, batch_id: str) -> BulkUploadResult:
    batch = db.get(UploadBatch, batch_id)
    if batch is None:
        raise BatchNotFoundError("Upload batch not found")
    return batch_to_result(batch)


def get_batch_history(
    db: Session,
    user_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> BatchHistory:
    """Batches newest first, optionally only those uploaded by `user_id`, offset-paginated."""
    page = max(page, 1)
    limit = max(limit, 1)
    query = db.query(UploadBatch)
    if user_id is not None:
        query = query.filter(UploadBatch.uploaded_by_id == user_id)
    total = query.count()
    batches = (
        query.options(joinedload(UploadBatch.uploaded_by))
        .order_by(UploadBatch.created_at.desc(), UploadBatch.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return BatchHistory(
        batches=[batch_to_result(b) for b in batches],
        total=total,
        page=page,
        pages=math.ceil(total / limit),
    )


_SAMPLE_ROWS = [
    {
        "accountNumber": "ACC001",
        "firstName": "John",
        "lastName": "Doe",
        "email": "john.doe@email.com",
        "originalAmount": "1000.00",
        "currentBalance": "850.00",
        "status": "ACTIVE",
        "priority": "HIGH",
    },
    {
        "accountNumber": "ACC002",
        "firstName": "Jane",
        "lastName": "Smith",
        "email": "jane.smith@email.com",
        "originalAmount": "2500.00",
        "currentBalance": "2200.00",
        "status": "NEW",
        "priority": "MEDIUM",
    },
]

FIELD_DESCRIPTIONS = {
    "accountNumber": "Unique account identifier (required)",
    "firstName": "Customer first name (required)",
    "lastName": "Customer last name (required)",
    "originalAmount": "Original debt amount (required, non-negative number; commas allowed)",
    "currentBalance": "Current outstanding balance (required, non-negative number; commas allowed)",
    "email": "Customer email address",
    "address1": "Street address",
    "zipCode": "Postal code",
    "amountPaid": "Amount paid to date",
    "interestRate": "Interest rate in percent",
    "lastPaymentDate": "Date of last payment (YYYY-MM-DD or MM/DD/YYYY)",
    "status": f"Account status ({', '.join(ACCOUNT_STATUSES)})",
    "priority": f"Collection priority ({', '.join(ACCOUNT_PRIORITIES)})",
    "preferredContactMethod": f"Preferred contact method ({', '.join(CONTACT_METHODS)})",
    "daysPastDue": "Days past due (whole number)",
    "doNotCall": "Do-not-call flag (true/false)",
    "disputeFlag": "Account in dispute (true/false)",
    "bankruptcyFlag": "Debtor in bankruptcy (true/false)",
    "deceasedFlag": "Debtor deceased (true/false)",
    "notes": "Free-text notes",
    "source": "Origin of the record (defaults to BULK_UPLOAD)",
}


def upload_template() -> dict[str, Any]:
    """Static description of the upload format, with a sample CSV."""
    sample_columns = list(_SAMPLE_ROWS[0].keys())
    return {
        "requiredFields": list(REQUIRED_FIELDS),
        "optionalFields": list(OPTIONAL_FIELDS),
        "allowedValues": {
            "status": list(ACCOUNT_STATUSES),
            "priority": list(ACCOUNT_PRIORITIES),
            "preferredContactMethod": list(CONTACT_METHODS),
        },
        "fieldDescriptions": FIELD_DESCRIPTIONS,
        "sampleCSV": write_csv_rows(_SAMPLE_ROWS, sample_columns),
    }
