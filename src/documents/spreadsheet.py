"""CSV upload validation and parsing.

Values are dynamically typed the way spreadsheet exports usually mean them:
integers and decimals become numbers, ``true``/``false`` become booleans and
empty cells become ``None``. Everything else stays a string.
"""

import csv
import io
import re
from pathlib import PurePath
from typing import Any

from src.core.exceptions import ExtractionError, UnsupportedFileError
from src.core.observability import NULL_SINK, ObservabilitySink
from src.core.schemas.spreadsheet import ParsedCSVData
from src.documents.classifier import CSV_MIME_TYPES, classify_spreadsheet

PREVIEW_ROWS = 100
DEFAULT_MAX_CSV_BYTES = 10 * 1024 * 1024

_INT = re.compile(r"^[-+]?\d+$")
_FLOAT = re.compile(r"^[-+]?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")
_AMOUNT_NOISE = re.compile(r"[$€£,\s]")


def validate_csv_upload(
    filename: str,
    file_size: int,
    mime_type: str | None = None,
    max_bytes: int = DEFAULT_MAX_CSV_BYTES,
) -> None:
    """Raise UnsupportedFileError when the upload cannot be a usable CSV."""
    if PurePath(filename).suffix.lower() != ".csv":
        raise UnsupportedFileError("Invalid file type. Please upload a CSV file.")
    # Some clients send no MIME type for CSV at all
    if mime_type and mime_type not in CSV_MIME_TYPES:
        raise UnsupportedFileError("Invalid file type. Please upload a CSV file.")
    if file_size > max_bytes:
        raise UnsupportedFileError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB. "
            "Try a smaller export or a different format."
        )
    if file_size == 0:
        raise UnsupportedFileError("File is empty. Please upload a CSV with data.")


def coerce_value(raw: str | None) -> Any:
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    lower = value.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    if _INT.match(value):
        return int(value)
    if _FLOAT.match(value):
        return float(value)
    return value


def parse_amount(value: Any) -> float | None:
    """Read a money cell: ``1200``, ``"$1,200.50"`` and ``"(300)"`` all work."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    text = _AMOUNT_NOISE.sub("", str(value))
    negative = text.startswith("(") and text.endswith(")")
    text = text.strip("()")
    try:
        amount = float(text)
    except ValueError:
        return None
    return -amount if negative else amount


def _decode(content: bytes | str) -> str:
    if isinstance(content, str):
        return content.lstrip("\ufeff")
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise UnsupportedFileError("Cannot read file: CSV must be UTF-8 encoded text")


def _unique_headers(raw_headers: list[str]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for index, raw in enumerate(raw_headers):
        name = raw.strip() or f"column_{index + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        headers.append(name)
    return headers


def read_csv(content: bytes | str) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse every row of a CSV with a header line.

    Blank lines are skipped. A row whose field count differs from the header
    is a parse error rather than being silently padded.
    """
    text = _decode(content)
    reader = csv.reader(io.StringIO(text, newline=""))
    headers: list[str] | None = None
    rows: list[dict[str, Any]] = []
    try:
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            if headers is None:
                headers = _unique_headers(record)
                continue
            if len(record) != len(headers):
                raise ExtractionError(
                    f"Unable to parse CSV: row {reader.line_num} has {len(record)} fields, "
                    f"expected {len(headers)}"
                )
            rows.append({h: coerce_value(v) for h, v in zip(headers, record)})
    except csv.Error as e:
        raise ExtractionError(f"Unable to parse CSV: {e}")

    if headers is None:
        raise ExtractionError("No data found: the CSV file is empty")
    if not rows:
        raise ExtractionError("No data rows found below the CSV header")
    return headers, rows


def parse_csv(
    content: bytes | str,
    filename: str | None = None,
    *,
    preview_rows: int = PREVIEW_ROWS,
    sink: ObservabilitySink = NULL_SINK,
) -> ParsedCSVData:
    """Parse, classify and return a preview of the first *preview_rows* rows."""
    headers, rows = read_csv(content)
    detection = classify_spreadsheet(filename, headers, sink=sink)
    sink.event(
        "spreadsheet.parse",
        filename=filename,
        columns=len(headers),
        rows=len(rows),
    )
    return ParsedCSVData(
        headers=headers,
        rows=rows[:preview_rows],
        total_rows=len(rows),
        detected_type=detection.type,
        confidence=detection.confidence,
    )
