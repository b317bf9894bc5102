"""Documents REST API: upload, status polling, data view, retry and delete."""

import logging
import uuid
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends, File, Response, UploadFile

from api.auth import get_current_user_id
from src.core.exceptions import SchedulingError
from src.core.models.document import Document
from src.core.schemas.document import DocumentData, DocumentRead, DocumentStatus
from src.documents.pipeline import DocumentPipeline, get_pipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["documents"])

Scheduler = Callable[[uuid.UUID, uuid.UUID], Awaitable[None]]


def get_document_pipeline() -> DocumentPipeline:
    return get_pipeline()


async def _enqueue_processing(document_id: uuid.UUID, user_id: uuid.UUID) -> None:
    from src.core.tasks.document_tasks import process_document

    await process_document.kiq(str(document_id), str(user_id))


def get_scheduler() -> Scheduler:
    """How processing is started once a document is ready (taskiq by default)."""
    return _enqueue_processing


async def _schedule_processing(
    pipeline: DocumentPipeline, schedule: Scheduler, document: Document, user_id: uuid.UUID
) -> None:
    try:
        await schedule(document.id, user_id)
    except Exception as e:
        logger.error("Could not queue processing for document %s: %s", document.id, e)
        error = SchedulingError()
        await pipeline.mark_failed(document, error)
        raise error from e


@router.post("/documents", response_model=DocumentRead, status_code=202)
async def upload_document(
    file: UploadFile = File(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    schedule: Scheduler = Depends(get_scheduler),
):
    content = await file.read()
    document = await pipeline.upload(
        user_id=user_id,
        filename=file.filename or "upload",
        content=content,
        mime_type=file.content_type,
    )
    await _schedule_processing(pipeline, schedule, document, user_id)
    return document


@router.get("/documents", response_model=list[DocumentRead])
async def list_documents(
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
):
    return await pipeline.list_documents(user_id)


@router.get("/documents/{document_id}", response_model=DocumentRead)
async def get_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
):
    return await pipeline.get(document_id, user_id)


@router.get("/documents/{document_id}/status", response_model=DocumentStatus)
async def get_document_status(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
):
    return await pipeline.status(document_id, user_id)


@router.get("/documents/{document_id}/data", response_model=DocumentData)
async def get_document_data(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
):
    return await pipeline.get_data(document_id, user_id)


@router.post("/documents/{document_id}/retry", response_model=DocumentRead, status_code=202)
async def retry_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
    schedule: Scheduler = Depends(get_scheduler),
):
    document = await pipeline.request_retry(document_id, user_id)
    await _schedule_processing(pipeline, schedule, document, user_id)
    logger.info("Retry scheduled for document %s", document_id)
    return document


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    pipeline: DocumentPipeline = Depends(get_document_pipeline),
):
    await pipeline.delete(document_id, user_id)
    return Response(status_code=204)
