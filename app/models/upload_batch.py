"""ORM model for bulk-upload batches and their aggregate outcome."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from app.models.base import Base

BATCH_STATUS_PROCESSING = "processing"
BATCH_STATUS_COMPLETED = "completed"
BATCH_STATUS_FAILED = "failed"
TERMINAL_BATCH_STATUSES = frozenset({BATCH_STATUS_COMPLETED, BATCH_STATUS_FAILED})


class UploadBatch(Base):
    """
    One bulk-upload invocation.

    errors holds the ordered row-level errors as a JSON list of {row, field, message}.
    Once status is completed or failed the row is not mutated again.
    """

    __tablename__ = "upload_batches"

    id = Column(String(64), primary_key=True)
    batch_name = Column(String(255), nullable=False, default="")
    original_filename = Column(String(512), nullable=False, default="")
    file_size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    uploaded_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status = Column(String(16), nullable=False, default=BATCH_STATUS_PROCESSING)
    skip_errors = Column(Boolean, nullable=False, default=False)
    update_existing = Column(Boolean, nullable=False, default=False)
    total_records = Column(Integer, nullable=False, default=0)
    successful_records = Column(Integer, nullable=False, default=0)
    failed_records = Column(Integer, nullable=False, default=0)
    duplicates = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    message = Column(Text, nullable=False, default="")
    rolled_back = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    processing_started = Column(DateTime(timezone=True), nullable=True)
    processing_completed = Column(DateTime(timezone=True), nullable=True)

    uploaded_by = relationship("User")
