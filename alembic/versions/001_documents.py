"""Documents table and its enum types.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID, JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── Enum types (idempotent via DO/EXCEPTION) ────────────────
    _enums = {
        "document_file_type": "'spreadsheet', 'pdf'",
        "document_processing_status": "'pending', 'processing', 'completed', 'error'",
        "spreadsheet_type": "'pl', 'payroll', 'employees', 'unknown'",
        "pdf_schema_type": "'pl', 'payroll', 'generic'",
    }
    for name, values in _enums.items():
        op.execute(sa.text(
            f"DO $$ BEGIN CREATE TYPE {name} AS ENUM ({values}); "
            f"EXCEPTION WHEN duplicate_object THEN NULL; END $$;"
        ))

    # Reference existing types: postgresql.ENUM with create_type=False
    file_type = ENUM("spreadsheet", "pdf", name="document_file_type", create_type=False)
    processing_status = ENUM(
        "pending", "processing", "completed", "error",
        name="document_processing_status", create_type=False,
    )
    spreadsheet_type = ENUM(
        "pl", "payroll", "employees", "unknown", name="spreadsheet_type", create_type=False
    )
    pdf_schema_type = ENUM("pl", "payroll", "generic", name="pdf_schema_type", create_type=False)

    op.create_table(
        "documents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("filename", sa.Text, nullable=False),
        sa.Column("file_type", file_type, nullable=False),
        sa.Column("file_size", sa.BigInteger, nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("storage_path", sa.Text, nullable=False),
        sa.Column(
            "processing_status", processing_status, nullable=False, server_default="pending"
        ),
        sa.Column("spreadsheet_type", spreadsheet_type, nullable=True),
        sa.Column("pdf_type", pdf_schema_type, nullable=True),
        sa.Column("extracted_data", JSONB, nullable=True),
        sa.Column("row_count", sa.Integer, nullable=True),
        sa.Column("column_mappings", JSONB, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        # extracted_data only on completed documents, error_message only on failed ones
        sa.CheckConstraint(
            "(processing_status = 'completed') = (extracted_data IS NOT NULL)",
            name="ck_documents_extracted_data_when_completed",
        ),
        sa.CheckConstraint(
            "(processing_status = 'error') = (error_message IS NOT NULL)",
            name="ck_documents_error_message_when_error",
        ),
    )

    op.create_index("ix_documents_user_id", "documents", ["user_id"])
    op.create_index("ix_documents_user_created", "documents", ["user_id", "created_at"])
    op.create_index(
        "ix_documents_processing_updated", "documents", ["processing_status", "updated_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_documents_processing_updated", table_name="documents")
    op.drop_index("ix_documents_user_created", table_name="documents")
    op.drop_index("ix_documents_user_id", table_name="documents")
    op.drop_table("documents")

    for name in (
        "pdf_schema_type",
        "spreadsheet_type",
        "document_processing_status",
        "document_file_type",
    ):
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))
