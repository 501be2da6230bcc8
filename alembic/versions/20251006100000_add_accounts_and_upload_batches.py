"""Add accounts and upload_batches tables for bulk account ingestion.

Revision ID: 20251006100000
Revises: 20251006000000
Create Date: 2025-10-06

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20251006100000"
down_revision: Union[str, None] = "20251006000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("full_name", sa.String(length=201), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("address1", sa.String(length=255), nullable=True),
        sa.Column("address2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("zip_code", sa.String(length=20), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=False, server_default="US"),
        sa.Column("original_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("interest_rate", sa.Numeric(7, 4), nullable=True),
        sa.Column("last_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="NEW"),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default="MEDIUM"),
        sa.Column(
            "preferred_contact_method",
            sa.String(length=16),
            nullable=False,
            server_default="PHONE",
        ),
        sa.Column("best_time_to_call", sa.String(length=64), nullable=True),
        sa.Column("timezone", sa.String(length=32), nullable=False, server_default="EST"),
        sa.Column("language", sa.String(length=16), nullable=False, server_default="EN"),
        sa.Column("days_past_due", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_contact_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_contact_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("do_not_call", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dispute_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bankruptcy_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deceased_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=False, server_default="BULK_UPLOAD"),
        sa.Column("batch_id", sa.String(length=64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_accounts_account_number"), "accounts", ["account_number"], unique=True)
    op.create_index(op.f("ix_accounts_status"), "accounts", ["status"], unique=False)
    op.create_index(op.f("ix_accounts_batch_id"), "accounts", ["batch_id"], unique=False)

    op.create_table(
        "upload_batches",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("batch_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("original_filename", sa.String(length=512), nullable=False, server_default=""),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "mime_type",
            sa.String(length=255),
            nullable=False,
            server_default="application/octet-stream",
        ),
        sa.Column("uploaded_by_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="processing"),
        sa.Column("skip_errors", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("update_existing", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicates", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("rolled_back", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("processing_started", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_completed", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_upload_batches_uploaded_by_id"), "upload_batches", ["uploaded_by_id"], unique=False)
    op.create_index(op.f("ix_upload_batches_created_at"), "upload_batches", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_upload_batches_created_at"), table_name="upload_batches")
    op.drop_index(op.f("ix_upload_batches_uploaded_by_id"), table_name="upload_batches")
    op.drop_table("upload_batches")
    op.drop_index(op.f("ix_accounts_batch_id"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_status"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_account_number"), table_name="accounts")
    op.drop_table("accounts")
