"""API-facing document schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from src.core.models.enums import (
    FileType,
    PDFSchemaType,
    ProcessingStage,
    ProcessingStatus,
    SpreadsheetType,
)


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    filename: str
    file_type: FileType
    file_size: int
    mime_type: str
    storage_path: str
    processing_status: ProcessingStatus
    spreadsheet_type: SpreadsheetType | None = None
    pdf_type: PDFSchemaType | None = None
    extracted_data: dict[str, Any] | None = None
    row_count: int | None = None
    column_mappings: dict[str, str] | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None


class RecoveryAdvice(BaseModel):
    category: str
    title: str
    description: str
    actions: list[str]
    raw_message: str | None = None


class DocumentStatus(BaseModel):
    document_id: uuid.UUID
    processing_status: ProcessingStatus
    stage: ProcessingStage
    upload_progress: int = 0
    elapsed_seconds: int | None = None
    is_timed_out: bool = False
    error: RecoveryAdvice | None = None


class DocumentData(BaseModel):
    headers: list[str]
    rows: list[dict[str, Any]]
    total_rows: int
