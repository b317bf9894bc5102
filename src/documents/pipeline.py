"""Document pipeline: ingestion, processing, retry and the read-side views.

One document's stages run strictly in order (classify, route, extract, map,
finalize). Any failure, timeout or cancellation leaves the record in
``error`` with a message the error classifier can categorise; nothing is
ever left in ``processing``.
"""

import asyncio
import json
import logging
import time
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from src.core.config import settings
from src.core.exceptions import (
    DocumentNotFoundError,
    ExtractionError,
    ExtractionTimeoutError,
    RemoteExtractionError,
    StorageError,
    UnsupportedFileError,
    UploadTimeoutError,
)
from src.core.models.document import Document
from src.core.models.enums import (
    ExtractionMode,
    ExtractionStrategy,
    FileType,
    PDFSchemaType,
    ProcessingStage,
    ProcessingStatus,
)
from src.core.observability import NULL_SINK, LoggingSink, ObservabilitySink
from src.core.schemas.document import DocumentData, DocumentStatus, RecoveryAdvice
from src.core.schemas.extraction import (
    GenericExtraction,
    PayrollExtraction,
    PLExtraction,
    parse_extraction,
    schema_type_of,
)
from src.documents.auto_mapper import auto_map_columns
from src.documents.classifier import classify_spreadsheet, detect_file_type, detect_pdf_type
from src.documents.errors import advise
from src.documents.progress import TERMINAL_STAGES, ProgressState, ProgressTracker
from src.documents.progress_store import ProgressStore
from src.documents.repository import DocumentRepository
from src.documents.router import attempt_order, choose_strategy
from src.documents.schema_mapper import Extraction, ExtractionRequest, SchemaMapper, map_spreadsheet
from src.documents.spreadsheet import read_csv, validate_csv_upload
from src.documents.storage import BlobStore
from src.documents.tabular import detect_tabular_content
from src.documents.text_extractor import PDFTextExtractionResult, extract_pdf_text

logger = logging.getLogger(__name__)

# Rows returned by the tabular data view of a spreadsheet.
DATA_VIEW_MAX_ROWS = 500
# Documents still pending or processing after this long are failed by the sweeper.
STALE_PROCESSING_AFTER = timedelta(minutes=15)

DEFAULT_MIME_TYPES = {FileType.pdf: "application/pdf", FileType.spreadsheet: "text/csv"}
EXTENSIONS = {FileType.pdf: "pdf", FileType.spreadsheet: "csv"}

_STAGE_FOR_STATUS = {
    ProcessingStatus.pending: ProcessingStage.idle,
    ProcessingStatus.processing: ProcessingStage.processing,
    ProcessingStatus.completed: ProcessingStage.complete,
    ProcessingStatus.error: ProcessingStage.error,
}

CANCELLED_MESSAGE = "Processing was cancelled before completion"
STALE_MESSAGE = "Processing timed out: the document was not finished in time"


class DocumentPipeline:
    def __init__(
        self,
        repository: DocumentRepository,
        storage: BlobStore,
        mapper: SchemaMapper,
        *,
        tracker: ProgressTracker | None = None,
        progress_store: ProgressStore | None = None,
        sink: ObservabilitySink = NULL_SINK,
        max_pdf_bytes: int | None = None,
        max_csv_bytes: int | None = None,
        upload_timeout_seconds: float | None = None,
    ):
        self.repository = repository
        self.storage = storage
        self.mapper = mapper
        self.tracker = tracker if tracker is not None else ProgressTracker()
        self.progress_store = progress_store
        self.sink = sink
        self.max_pdf_bytes = max_pdf_bytes or settings.max_pdf_bytes
        self.max_csv_bytes = max_csv_bytes or settings.max_csv_bytes
        self.upload_timeout_seconds = upload_timeout_seconds or settings.upload_timeout_seconds

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------
    async def _publish(self, document_id: str, state: ProgressState) -> None:
        if self.progress_store is None:
            return
        try:
            await self.progress_store.save(document_id, state)
        except Exception as e:
            logger.warning("Failed to publish progress for %s: %s", document_id, e)

    async def _finish(self, document_id: str, state: ProgressState) -> None:
        """Publish a terminal snapshot and stop tracking the document locally."""
        await self._publish(document_id, state)
        self.tracker.reset(document_id)

    async def _stage(self, document: Document, stage: ProcessingStage) -> None:
        doc_id = str(document.id)
        state = self.tracker.get(doc_id)
        if state is None or state.stage in TERMINAL_STAGES:
            state = self.tracker.resume(doc_id, stage, document.file_size)
        else:
            state = self.tracker.set_stage(doc_id, stage)
        await self._publish(doc_id, state)

    async def _fail(self, document: Document, error: BaseException | str) -> None:
        message = str(error) or type(error).__name__
        document.fail(message)
        await self.repository.save(document)

        doc_id = str(document.id)
        if doc_id not in self.tracker:
            self.tracker.resume(doc_id, ProcessingStage.processing, document.file_size)
        await self._finish(doc_id, self.tracker.fail(doc_id, message))

        category = advise(message).category.value
        logger.warning("Document %s failed (%s): %s", doc_id, category, message)
        self.sink.event("pipeline.failed", document_id=doc_id, category=category)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    async def upload(
        self,
        user_id: uuid.UUID,
        filename: str,
        content: bytes,
        mime_type: str | None = None,
    ) -> Document:
        """Validate, record and store a new upload; the record starts ``pending``.

        Raises UnsupportedFileError before anything is recorded. A storage
        failure or timeout leaves the record in ``error`` and is re-raised.
        """
        file_type = detect_file_type(filename, mime_type, content[:1024])
        if file_type == FileType.spreadsheet:
            validate_csv_upload(filename, len(content), mime_type, self.max_csv_bytes)
        elif not content:
            raise UnsupportedFileError("File is empty. Please upload a PDF with data.")
        elif len(content) > self.max_pdf_bytes:
            raise UnsupportedFileError(
                f"File too large. Maximum size is {self.max_pdf_bytes // (1024 * 1024)}MB. "
                "Try a smaller export or a different format."
            )

        storage_path = f"{user_id}/{int(time.time() * 1000)}.{EXTENSIONS[file_type]}"
        document = Document.create(
            user_id=user_id,
            filename=filename,
            file_type=file_type,
            file_size=len(content),
            mime_type=mime_type or DEFAULT_MIME_TYPES[file_type],
            storage_path=storage_path,
        )
        await self.repository.add(document)
        doc_id = str(document.id)
        await self._publish(doc_id, self.tracker.start(doc_id, len(content)))

        try:
            await asyncio.wait_for(
                self.storage.upload(storage_path, content, document.mime_type),
                timeout=self.upload_timeout_seconds,
            )
        except TimeoutError:
            error = UploadTimeoutError(self.upload_timeout_seconds)
            await self._fail(document, error)
            raise error
        except StorageError as e:
            await self._fail(document, e)
            raise
        except asyncio.CancelledError:
            await self._fail(document, "Upload was cancelled before completion")
            raise

        state = self.tracker.set_upload_progress(doc_id, 100)
        if state is not None:
            await self._publish(doc_id, state)
        logger.info("Uploaded %s (%s, %d bytes) as %s", filename, file_type.value, len(content), doc_id)
        return document

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    async def process(self, document_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Document:
        """Run a ``pending`` document through the pipeline to ``completed`` or ``error``."""
        document = await self._load(document_id, user_id)
        document.start_processing()
        await self.repository.save(document)
        await self._stage(document, ProcessingStage.processing)

        try:
            content = await self.storage.download(document.storage_path)
            if document.file_type == FileType.spreadsheet:
                await self._process_spreadsheet(document, content)
            else:
                await self._process_pdf(document, content)
        except asyncio.CancelledError:
            await self._fail(document, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            await self._fail(document, e)
            return document

        await self.repository.save(document)
        doc_id = str(document.id)
        await self._finish(doc_id, self.tracker.complete(doc_id))
        logger.info("Document %s completed as %s", doc_id, document.subtype)
        self.sink.event("pipeline.completed", document_id=doc_id, subtype=document.subtype)
        return document

    async def _process_spreadsheet(self, document: Document, content: bytes) -> None:
        headers, rows = await asyncio.to_thread(read_csv, content)
        detection = classify_spreadsheet(document.filename, headers, sink=self.sink)
        mapping = auto_map_columns(headers, detection.type)
        await self._stage(document, ProcessingStage.extracting)

        result = map_spreadsheet(headers, rows, detection.type, mapping)
        document.spreadsheet_type = detection.type
        document.complete(
            result.model_dump(mode="json"),
            row_count=len(rows),
            column_mappings=mapping.mappings,
        )

    async def _process_pdf(self, document: Document, content: bytes) -> None:
        hint = detect_pdf_type(document.filename, sink=self.sink)
        document.pdf_type = hint
        strategy = choose_strategy(len(content), sink=self.sink)

        text_result = await asyncio.to_thread(
            extract_pdf_text, content, max_bytes=self.max_pdf_bytes, sink=self.sink
        )
        if not text_result.success:
            raise UnsupportedFileError(f"Unsupported or corrupt file format: {text_result.error}")
        tabular = detect_tabular_content(text_result.text) if text_result.has_text else False

        await self._stage(document, ProcessingStage.extracting)
        result = await self._extract(document, content, text_result, hint, strategy, tabular)

        if isinstance(result, PLExtraction) and result.metadata.page_count <= 1:
            result.metadata.page_count = max(text_result.page_count, 1)
        document.pdf_type = schema_type_of(result)
        document.complete(result.model_dump(mode="json"))

    async def _extract(
        self,
        document: Document,
        content: bytes,
        text_result: PDFTextExtractionResult,
        hint: PDFSchemaType,
        strategy: ExtractionStrategy,
        tabular: bool,
    ) -> Extraction:
        """Try each mode in routing order; fall through only on timeout or no usable data."""
        failures: list[ExtractionError] = []
        for mode in attempt_order(strategy):
            if mode == ExtractionMode.text and not text_result.has_text:
                self.sink.event("pipeline.attempt_skipped", mode=mode.value, reason="no_text")
                continue
            request = ExtractionRequest(
                mode=mode,
                schema=hint,
                filename=document.filename,
                text=text_result.text if mode == ExtractionMode.text else None,
                content=content if mode == ExtractionMode.vision else None,
                tabular=tabular,
            )
            try:
                result = await self.mapper.map_pdf(request)
            except RemoteExtractionError:
                raise
            except ExtractionError as e:
                failures.append(e)
                logger.info("Extraction via %s failed for %s: %s", mode.value, document.id, e)
                self.sink.event("pipeline.strategy_fallback", mode=mode.value, reason=str(e))
                continue
            self.sink.event(
                "pipeline.extracted",
                document_id=str(document.id),
                mode=mode.value,
                strategy=strategy.value,
                schema=schema_type_of(result).value,
            )
            return result

        if not failures:
            raise ExtractionError("No data could be extracted from the document")
        # A timeout points the user at the most useful recovery (CSV export)
        for failure in failures:
            if isinstance(failure, ExtractionTimeoutError):
                raise failure
        raise failures[-1]

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------
    async def request_retry(
        self, document_id: uuid.UUID, user_id: uuid.UUID | None = None
    ) -> Document:
        """Put an errored document back to ``pending``; its stored bytes are reused."""
        document = await self._load(document_id, user_id)
        document.reset_for_retry()
        await self.repository.save(document)

        doc_id = str(document.id)
        state = self.tracker.get(doc_id)
        if state is not None and state.stage == ProcessingStage.error:
            state = self.tracker.retry(doc_id)
        else:
            state = self.tracker.resume(doc_id, ProcessingStage.processing, document.file_size)
        await self._publish(doc_id, state)
        self.sink.event("pipeline.retry", document_id=doc_id)
        return document

    async def retry(self, document_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Document:
        document = await self.request_retry(document_id, user_id)
        return await self.process(document.id, user_id)

    async def mark_failed(self, document: Document, error: BaseException | str) -> Document:
        """Move a document to ``error`` when work around the pipeline failed (e.g. queueing)."""
        await self._fail(document, error)
        return document

    async def fail_stale(self, older_than: timedelta = STALE_PROCESSING_AFTER) -> int:
        """Fail documents stuck in ``pending`` or ``processing`` (lost job, worker crash)."""
        cutoff = datetime.now(UTC) - older_than
        stale = await self.repository.list_stale(cutoff)
        for document in stale:
            await self._fail(document, STALE_MESSAGE)
        return len(stale)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def _load(self, document_id: uuid.UUID, user_id: uuid.UUID | None) -> Document:
        document = await self.repository.get(document_id, user_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def get(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Document:
        return await self._load(document_id, user_id)

    async def list_documents(self, user_id: uuid.UUID) -> list[Document]:
        return await self.repository.list_for_user(user_id)

    async def delete(self, document_id: uuid.UUID, user_id: uuid.UUID) -> None:
        document = await self._load(document_id, user_id)
        await self.storage.remove([document.storage_path])
        await self.repository.delete(document.id)

        doc_id = str(document.id)
        self.tracker.reset(doc_id)
        if self.progress_store is not None:
            await self.progress_store.clear(doc_id)
        logger.info("Deleted document %s", doc_id)

    async def get_data(self, document_id: uuid.UUID, user_id: uuid.UUID) -> DocumentData:
        """Tabular view of a document's contents."""
        document = await self._load(document_id, user_id)
        if document.file_type == FileType.spreadsheet:
            content = await self.storage.download(document.storage_path)
            headers, rows = await asyncio.to_thread(read_csv, content)
            return DocumentData(
                headers=headers, rows=rows[:DATA_VIEW_MAX_ROWS], total_rows=len(rows)
            )

        if not document.extracted_data:
            raise ExtractionError("No extracted data available for this document")
        return tabulate_extraction(parse_extraction(document.extracted_data))

    async def status(self, document_id: uuid.UUID, user_id: uuid.UUID | None = None) -> DocumentStatus:
        document = await self._load(document_id, user_id)
        doc_id = str(document.id)
        now = self.tracker.now()

        # Workers publish to the shared store; the local tracker only sees this process
        state = None
        if self.progress_store is not None:
            snapshot = await self.progress_store.load(doc_id)
            state = snapshot.at(now) if snapshot is not None else None
        if state is None:
            state = self.tracker.get(doc_id)

        # The persisted status wins once processing has finished
        stage = _STAGE_FOR_STATUS[document.processing_status]
        if state is not None and document.processing_status in (
            ProcessingStatus.pending,
            ProcessingStatus.processing,
        ):
            stage = state.stage

        advice = None
        if document.processing_status == ProcessingStatus.error:
            found = advise(document.error_message)
            advice = RecoveryAdvice(
                category=found.category.value,
                title=found.title,
                description=found.description,
                actions=[a.value for a in found.actions],
                raw_message=document.error_message,
            )

        return DocumentStatus(
            document_id=document.id,
            processing_status=document.processing_status,
            stage=stage,
            upload_progress=state.upload_progress if state else _default_upload(document),
            elapsed_seconds=state.visible_elapsed_seconds(now) if state else None,
            is_timed_out=state.is_timed_out if state else False,
            error=advice,
        )


def _default_upload(document: Document) -> int:
    return 100 if document.processing_status != ProcessingStatus.pending else 0


def _pl_row(section: str, category: str, description: str, amount: float) -> dict[str, Any]:
    return {"section": section, "category": category, "description": description, "amount": amount}


def tabulate_extraction(result: Extraction) -> DocumentData:
    """Line items of an extraction as rows, or a Field/Value summary."""
    rows: list[dict[str, Any]] = []
    match result:
        case PLExtraction():
            headers = ["section", "category", "description", "amount"]
            for item in result.revenue.line_items:
                rows.append(_pl_row("revenue", "", item.description, item.amount))
            for category in result.expenses.categories:
                if not category.line_items:
                    rows.append(
                        _pl_row("expenses", category.category, category.category, category.amount)
                    )
                for item in category.line_items:
                    rows.append(
                        _pl_row("expenses", category.category, item.description, item.amount)
                    )
        case PayrollExtraction():
            headers = ["name", "role", "hours_worked", "gross_pay", "taxes", "benefits", "net_pay"]
            rows = [employee.model_dump() for employee in result.employees]
        case GenericExtraction():
            headers = ["row"]
            if result.tables:
                rows = [{"row": line} for line in result.tables[0]]
        case _:
            headers = []

    if rows:
        return DocumentData(headers=headers, rows=rows, total_rows=len(rows))

    summary = result.model_dump(mode="json", exclude={"document_type"})
    rows = [{"Field": key, "Value": json.dumps(value)} for key, value in summary.items()]
    return DocumentData(headers=["Field", "Value"], rows=rows, total_rows=len(rows))


_pipeline: DocumentPipeline | None = None


def get_pipeline() -> DocumentPipeline:
    """Process-wide pipeline wired to Postgres, Supabase Storage, Redis and the LLM."""
    global _pipeline
    if _pipeline is None:
        from src.core.db import redis
        from src.documents.progress_store import RedisProgressStore
        from src.documents.repository import SqlDocumentRepository
        from src.documents.schema_mapper import InstructorExtractor
        from src.documents.storage import get_blob_store

        sink = LoggingSink(logging.getLogger("src.documents.events"))
        _pipeline = DocumentPipeline(
            repository=SqlDocumentRepository(),
            storage=get_blob_store(),
            mapper=SchemaMapper(
                InstructorExtractor(), settings.extraction_timeout_seconds, sink=sink
            ),
            progress_store=RedisProgressStore(redis, settings.progress_ttl_seconds),
            sink=sink,
        )
    return _pipeline
