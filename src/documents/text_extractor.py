"""Local PDF text extraction with PyMuPDF, no AI model involved.

Failures never raise: a corrupt buffer, a non-PDF or an oversized file comes
back as ``PDFTextExtractionResult(success=False, error=...)`` so the caller
decides what the failure means for the document.
"""

import time
from dataclasses import dataclass, field

import fitz  # PyMuPDF

from src.core.observability import NULL_SINK, ObservabilitySink

PDF_SIGNATURE = b"%PDF"

# Hard ceiling when the caller does not pass one.
DEFAULT_MAX_PDF_BYTES = 25 * 1024 * 1024


@dataclass
class PDFTextExtractionResult:
    success: bool
    text: str = ""
    page_texts: list[str] = field(default_factory=list)
    page_count: int = 0
    processing_time_ms: int = 0
    error: str | None = None

    @property
    def has_text(self) -> bool:
        return self.success and bool(self.text.strip())


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def extract_pdf_text(
    pdf_bytes: bytes,
    *,
    max_bytes: int = DEFAULT_MAX_PDF_BYTES,
    sink: ObservabilitySink = NULL_SINK,
) -> PDFTextExtractionResult:
    """Extract page count, full text and per-page text from a PDF buffer."""
    start = time.perf_counter()

    error: str | None = None
    if not pdf_bytes:
        error = "Empty file: no PDF content"
    elif len(pdf_bytes) > max_bytes:
        error = f"PDF is larger than the {max_bytes} byte processing limit"
    elif PDF_SIGNATURE not in pdf_bytes[:1024]:
        error = "Invalid PDF format: missing %PDF header"

    if error:
        return _failure(error, start, sink)

    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.needs_pass:
                return _failure("Encrypted PDF cannot be read without a password", start, sink)
            page_texts = [page.get_text("text") for page in doc]
            page_count = doc.page_count
    except Exception as e:
        return _failure(f"Corrupt or unreadable PDF: {e}", start, sink)

    text = "\n".join(page_texts)
    processing_time_ms = _elapsed_ms(start)
    sink.event(
        "text_extractor.extract",
        success=True,
        page_count=page_count,
        text_length=len(text),
        processing_time_ms=processing_time_ms,
    )
    return PDFTextExtractionResult(
        success=True,
        text=text,
        page_texts=page_texts,
        page_count=page_count,
        processing_time_ms=processing_time_ms,
    )


def _failure(error: str, start: float, sink: ObservabilitySink) -> PDFTextExtractionResult:
    processing_time_ms = _elapsed_ms(start)
    sink.event(
        "text_extractor.extract",
        success=False,
        error=error,
        processing_time_ms=processing_time_ms,
    )
    return PDFTextExtractionResult(success=False, processing_time_ms=processing_time_ms, error=error)
