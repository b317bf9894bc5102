import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.core.models.base import Base, TimestampMixin
from src.core.models.enums import (
    FileType,
    PDFSchemaType,
    ProcessingEvent,
    ProcessingStatus,
    SpreadsheetType,
)
from src.documents import status as lifecycle


class Document(Base, TimestampMixin):
    """One uploaded file and the outcome of processing it.

    Status changes go through the lifecycle methods below, never by assigning
    ``processing_status`` directly. They keep ``extracted_data`` set only while
    completed and ``error_message`` set only while in error.
    """

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    filename: Mapped[str] = mapped_column(Text)
    file_type: Mapped[FileType] = mapped_column(
        ENUM(FileType, name="document_file_type", create_type=False)
    )
    file_size: Mapped[int] = mapped_column(BigInteger)
    mime_type: Mapped[str] = mapped_column(String(100))
    storage_path: Mapped[str] = mapped_column(Text)
    processing_status: Mapped[ProcessingStatus] = mapped_column(
        ENUM(ProcessingStatus, name="document_processing_status", create_type=False),
        default=ProcessingStatus.pending,
    )
    spreadsheet_type: Mapped[SpreadsheetType | None] = mapped_column(
        ENUM(SpreadsheetType, name="spreadsheet_type", create_type=False), nullable=True
    )
    pdf_type: Mapped[PDFSchemaType | None] = mapped_column(
        ENUM(PDFSchemaType, name="pdf_schema_type", create_type=False), nullable=True
    )
    extracted_data: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    row_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    column_mappings: Mapped[dict | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def create(
        cls,
        *,
        user_id: uuid.UUID,
        filename: str,
        file_type: FileType,
        file_size: int,
        mime_type: str,
        storage_path: str,
    ) -> "Document":
        now = datetime.now(UTC)
        return cls(
            id=uuid.uuid4(),
            user_id=user_id,
            filename=filename,
            file_type=file_type,
            file_size=file_size,
            mime_type=mime_type,
            storage_path=storage_path,
            processing_status=ProcessingStatus.pending,
            created_at=now,
            updated_at=now,
        )

    @property
    def subtype(self) -> str | None:
        kind = self.spreadsheet_type if self.file_type == FileType.spreadsheet else self.pdf_type
        return kind.value if kind is not None else None

    def _apply(self, event: ProcessingEvent) -> None:
        self.processing_status = lifecycle.next_status(self.processing_status, event)
        self.updated_at = datetime.now(UTC)

    def start_processing(self) -> None:
        self._apply(ProcessingEvent.start)

    def complete(
        self,
        extracted_data: dict[str, Any],
        *,
        row_count: int | None = None,
        column_mappings: dict[str, str] | None = None,
    ) -> None:
        self._apply(ProcessingEvent.succeed)
        self.extracted_data = extracted_data
        self.error_message = None
        if row_count is not None:
            self.row_count = row_count
        if column_mappings is not None:
            self.column_mappings = column_mappings
        self.processed_at = self.updated_at

    def fail(self, message: str | None) -> None:
        self._apply(ProcessingEvent.fail)
        self.error_message = message or "Unknown error"
        self.extracted_data = None

    def reset_for_retry(self) -> None:
        self._apply(ProcessingEvent.retry)
        self.error_message = None
        self.extracted_data = None
        self.processed_at = None
