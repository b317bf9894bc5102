from src.core.models.base import Base
from src.core.models.document import Document
from src.core.models.enums import (
    ExtractionMode,
    ExtractionStrategy,
    FileType,
    PDFSchemaType,
    ProcessingEvent,
    ProcessingStage,
    ProcessingStatus,
    SpreadsheetType,
)

__all__ = [
    "Base",
    "Document",
    "ExtractionMode",
    "ExtractionStrategy",
    "FileType",
    "PDFSchemaType",
    "ProcessingEvent",
    "ProcessingStage",
    "ProcessingStatus",
    "SpreadsheetType",
]
