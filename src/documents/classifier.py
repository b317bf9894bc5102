"""Document type classification.

Everything here is a best-effort hint: the schema mapper may settle on a
different effective subtype once it has seen the content.
"""

import re
from pathlib import PurePath

from src.core.exceptions import UnsupportedFileError
from src.core.models.enums import FileType, PDFSchemaType, SpreadsheetType
from src.core.observability import NULL_SINK, ObservabilitySink
from src.core.schemas.spreadsheet import TypeDetection

PDF_SIGNATURE = b"%PDF"

PDF_MIME_TYPES = {"application/pdf", "application/x-pdf"}
CSV_MIME_TYPES = {"text/csv", "text/plain", "application/csv", "application/vnd.ms-excel"}

PL_FILENAME_KEYWORDS = (
    "p&l",
    "pl_",
    "_pl",
    "profit",
    "loss",
    "income_statement",
    "income-statement",
    "income",
)
PAYROLL_FILENAME_KEYWORDS = ("payroll", "pay_", "_pay", "salary", "wages", "compensation")
ROSTER_FILENAME_KEYWORDS = ("roster", "employees", "employee_list", "staff", "headcount")

# Confidence reported when only the filename identified a spreadsheet.
FILENAME_ONLY_CONFIDENCE = 0.3

# Header patterns. "Unique" patterns rarely appear in the other families and
# count double.
PL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"revenue",
        r"income",
        r"sales",
        r"expense",
        r"cost",
        r"spending",
        r"net\s?(income|profit)",
        r"total",
        r"gross",
        r"margin",
        r"operating",
        r"overhead",
    )
]
PAYROLL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"employee",
        r"name",
        r"staff",
        r"hours",
        r"rate",
        r"wage",
        r"gross",
        r"net",
        r"pay",
        r"deduction",
        r"tax",
        r"period",
        r"check",
        r"deposit",
    )
]
EMPLOYEE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"employee",
        r"name",
        r"staff",
        r"role",
        r"title",
        r"position",
        r"department",
        r"team",
        r"salary",
        r"compensation",
        r"benefits",
        r"hire",
        r"start",
        r"email",
        r"phone",
    )
]
PL_UNIQUE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"revenue",
        r"expense",
        r"net\s?(income|profit)",
        r"ebitda",
        r"gross\s?margin",
        r"operating\s?(income|expense)",
    )
]
PAYROLL_UNIQUE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"hours\s?(worked)?",
        r"hourly\s?rate",
        r"gross\s?pay",
        r"net\s?pay",
        r"deduction",
        r"withholding",
        r"overtime",
        r"pay\s?(period|date)",
    )
]
EMPLOYEE_UNIQUE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"annual\s?salary",
        r"annual\s?benefits",
        r"employment\s?type",
        r"hire\s?date",
        r"department",
        r"job\s?title",
        r"start\s?date",
    )
]

_FAMILIES = (
    (SpreadsheetType.pl, PL_PATTERNS, PL_UNIQUE_PATTERNS),
    (SpreadsheetType.payroll, PAYROLL_PATTERNS, PAYROLL_UNIQUE_PATTERNS),
    (SpreadsheetType.employees, EMPLOYEE_PATTERNS, EMPLOYEE_UNIQUE_PATTERNS),
)

SPREADSHEET_LABELS = {
    SpreadsheetType.pl: "Profit & Loss Statement",
    SpreadsheetType.payroll: "Payroll Report",
    SpreadsheetType.employees: "Employee Roster",
    SpreadsheetType.unknown: "Unknown Format",
}


def detect_file_type(filename: str, mime_type: str | None = None, head: bytes = b"") -> FileType:
    """Decide between spreadsheet and PDF from signature, extension and MIME type.

    Raises UnsupportedFileError for anything else.
    """
    if head.startswith(PDF_SIGNATURE):
        return FileType.pdf
    suffix = PurePath(filename).suffix.lower()
    if suffix == ".pdf" or (not suffix and mime_type in PDF_MIME_TYPES):
        return FileType.pdf
    if suffix == ".csv" or (not suffix and mime_type in CSV_MIME_TYPES):
        return FileType.spreadsheet
    raise UnsupportedFileError(
        f"Unsupported file type '{suffix or mime_type or 'unknown'}'. Only CSV and PDF files are supported."
    )


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


def detect_pdf_type(filename: str | None, sink: ObservabilitySink = NULL_SINK) -> PDFSchemaType:
    """Guess the extraction schema from the filename alone."""
    lower = (filename or "").lower()
    if _contains_any(lower, PL_FILENAME_KEYWORDS):
        result = PDFSchemaType.pl
    elif _contains_any(lower, PAYROLL_FILENAME_KEYWORDS):
        result = PDFSchemaType.payroll
    else:
        result = PDFSchemaType.generic
    sink.event("classifier.pdf_type", filename=filename, pdf_type=result.value)
    return result


def spreadsheet_type_from_filename(filename: str | None) -> SpreadsheetType:
    lower = (filename or "").lower()
    if _contains_any(lower, PL_FILENAME_KEYWORDS):
        return SpreadsheetType.pl
    if _contains_any(lower, PAYROLL_FILENAME_KEYWORDS):
        return SpreadsheetType.payroll
    if _contains_any(lower, ROSTER_FILENAME_KEYWORDS):
        return SpreadsheetType.employees
    return SpreadsheetType.unknown


def _count_matches(
    headers: list[str], patterns: list[re.Pattern], unique_patterns: list[re.Pattern]
) -> tuple[int, list[str], int]:
    matched: list[str] = []
    used: set[str] = set()
    unique_matches = 0
    for header in headers:
        for pattern in patterns:
            if pattern.pattern not in used and pattern.search(header):
                matched.append(header)
                used.add(pattern.pattern)
                break
        if any(p.search(header) for p in unique_patterns):
            unique_matches += 1
    return len(matched), matched, unique_matches


def detect_spreadsheet_type(headers: list[str] | None) -> TypeDetection:
    """Score column headers against the P&L, Payroll and roster families.

    The winner needs at least 2 points and a 2-point lead over the runner-up.
    """
    if not headers:
        return TypeDetection(type=SpreadsheetType.unknown, confidence=0.0)

    normalized = [h.lower().strip() for h in headers]
    scores = []
    for sheet_type, patterns, unique_patterns in _FAMILIES:
        count, matched, unique = _count_matches(normalized, patterns, unique_patterns)
        scores.append((count + unique * 2, sheet_type, matched))

    # sorted() is stable, so ties keep family order
    scores = sorted(scores, key=lambda s: s[0], reverse=True)
    best_score, best_type, best_matched = scores[0]
    runner_up = scores[1][0]

    if best_score < 2 or best_score - runner_up < 2:
        return TypeDetection(type=SpreadsheetType.unknown, confidence=0.0)

    confidence = min(best_score / (len(headers) + 2), 1.0)
    return TypeDetection(
        type=best_type,
        confidence=round(confidence, 2),
        matched_columns=best_matched,
    )


def classify_spreadsheet(
    filename: str | None,
    headers: list[str] | None,
    sink: ObservabilitySink = NULL_SINK,
) -> TypeDetection:
    """Headers decide first; the filename is only consulted when they are inconclusive."""
    detection = detect_spreadsheet_type(headers)
    source = "headers"
    if detection.type == SpreadsheetType.unknown:
        from_name = spreadsheet_type_from_filename(filename)
        if from_name != SpreadsheetType.unknown:
            detection = TypeDetection(type=from_name, confidence=FILENAME_ONLY_CONFIDENCE)
            source = "filename"
        else:
            source = "none"
    sink.event(
        "classifier.spreadsheet_type",
        filename=filename,
        spreadsheet_type=detection.type.value,
        confidence=detection.confidence,
        source=source,
    )
    return detection


def get_spreadsheet_label(sheet_type: SpreadsheetType) -> str:
    return SPREADSHEET_LABELS.get(sheet_type, SPREADSHEET_LABELS[SpreadsheetType.unknown])
