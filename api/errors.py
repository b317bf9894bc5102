"""Maps pipeline exceptions to HTTP responses with a friendly message."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.exceptions import (
    DocumentNotFoundError,
    DocumentPipelineError,
    ExtractionError,
    InvalidTransitionError,
    SchedulingError,
    StorageError,
    UnauthorizedError,
    UnsupportedFileError,
)
from src.documents.errors import ErrorContext, categorize_error, get_friendly_error

logger = logging.getLogger(__name__)

# Checked in order; the first matching class decides the response.
ERROR_RESPONSES: tuple[tuple[type[DocumentPipelineError], int, ErrorContext], ...] = (
    (DocumentNotFoundError, 404, ErrorContext.general),
    (UnauthorizedError, 401, ErrorContext.general),
    (InvalidTransitionError, 409, ErrorContext.general),
    (UnsupportedFileError, 415, ErrorContext.document_upload),
    (StorageError, 502, ErrorContext.document_upload),
    (SchedulingError, 503, ErrorContext.document_upload),
    (ExtractionError, 409, ErrorContext.document_processing),
)


async def pipeline_error_handler(request: Request, exc: DocumentPipelineError) -> JSONResponse:
    status_code, context = 500, ErrorContext.general
    for error_type, code, error_context in ERROR_RESPONSES:
        if isinstance(exc, error_type):
            status_code, context = code, error_context
            break
    friendly = get_friendly_error(exc, context)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "category": categorize_error(str(exc)).value,
            "message": friendly.message,
            "suggestion": friendly.suggestion,
            "retryable": friendly.is_retryable,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DocumentPipelineError, pipeline_error_handler)
