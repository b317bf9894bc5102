"""Background document jobs: processing and the stale-document sweeper."""

import logging
import uuid

from src.core.exceptions import DocumentPipelineError
from src.core.tasks.broker import broker
from src.documents.pipeline import get_pipeline

logger = logging.getLogger(__name__)


@broker.task
async def process_document(document_id: str, user_id: str) -> str:
    """Run one uploaded document through the pipeline. Returns the final status."""
    try:
        document = await get_pipeline().process(uuid.UUID(document_id), uuid.UUID(user_id))
    except DocumentPipelineError as e:
        logger.warning("Document %s not processed: %s", document_id, e)
        return "skipped"
    return document.processing_status.value


@broker.task(schedule=[{"cron": "*/5 * * * *"}])  # Every 5 minutes
async def fail_stale_documents() -> int:
    """Move documents stuck in processing (crashed worker, lost job) to error."""
    count = await get_pipeline().fail_stale()
    if count:
        logger.info("Failed %d stale documents", count)
    return count
