from src.core.schemas.document import DocumentData, DocumentRead, DocumentStatus, RecoveryAdvice
from src.core.schemas.extraction import (
    ExtractionResult,
    GenericExtraction,
    PayrollExtraction,
    PLExtraction,
)
from src.core.schemas.spreadsheet import AutoMapping, ParsedCSVData, TypeDetection

__all__ = [
    "AutoMapping",
    "DocumentData",
    "DocumentRead",
    "DocumentStatus",
    "ExtractionResult",
    "GenericExtraction",
    "ParsedCSVData",
    "PayrollExtraction",
    "PLExtraction",
    "RecoveryAdvice",
    "TypeDetection",
]
