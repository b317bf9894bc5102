"""Error categorisation and recovery advice for failed documents.

Categorisation is keyword based, case-insensitive and checked in a fixed
order (network, format, timeout, extraction), so a message matching several
categories always lands in the first one. Pure functions only; acting on the
advice (retrying, opening manual entry) is the caller's job.
"""

import enum
from dataclasses import dataclass


class ErrorCategory(str, enum.Enum):
    network = "network"
    format = "format"
    timeout = "timeout"
    extraction = "extraction"
    unknown = "unknown"


class RecoveryAction(str, enum.Enum):
    retry = "retry"
    upload_different_file = "upload_different_file"
    upload_spreadsheet = "upload_spreadsheet"
    manual_entry = "manual_entry"
    contact_support = "contact_support"
    chat_to_resolve = "chat_to_resolve"


ACTION_LABELS = {
    RecoveryAction.retry: "Retry",
    RecoveryAction.upload_different_file: "Upload different file",
    RecoveryAction.upload_spreadsheet: "Upload CSV instead",
    RecoveryAction.manual_entry: "Enter data manually",
    RecoveryAction.contact_support: "Contact support",
    RecoveryAction.chat_to_resolve: "Chat to resolve",
}

CATEGORY_KEYWORDS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.network, ("network", "connection", "fetch", "offline")),
    (
        ErrorCategory.format,
        ("format", "type", "corrupt", "unsupported", "invalid file", "cannot read"),
    ),
    (
        ErrorCategory.timeout,
        ("timeout", "timed out", "too long", "rate limit", "too complex", "exceeded"),
    ),
    (ErrorCategory.extraction, ("extract", "parse", "no data", "empty", "unrecognized")),
)


@dataclass(frozen=True)
class RecoveryAdvice:
    category: ErrorCategory
    title: str
    description: str
    actions: tuple[RecoveryAction, ...]

    @property
    def action_labels(self) -> list[str]:
        return [ACTION_LABELS[a] for a in self.actions]


ADVICE = {
    ErrorCategory.network: RecoveryAdvice(
        category=ErrorCategory.network,
        title="Connection issue",
        description="Check your internet connection and try again.",
        actions=(RecoveryAction.retry, RecoveryAction.chat_to_resolve),
    ),
    ErrorCategory.format: RecoveryAdvice(
        category=ErrorCategory.format,
        title="File format issue",
        description=(
            "The file may be in an unsupported format or corrupted. "
            "Try exporting to a standard format."
        ),
        actions=(
            RecoveryAction.upload_different_file,
            RecoveryAction.manual_entry,
            RecoveryAction.chat_to_resolve,
        ),
    ),
    ErrorCategory.timeout: RecoveryAdvice(
        category=ErrorCategory.timeout,
        title="Document too complex",
        description=(
            "This document has complex tables or formatting that couldn't be processed "
            "automatically. Export your data as a CSV file from your accounting software "
            "and upload that instead."
        ),
        actions=(
            RecoveryAction.upload_spreadsheet,
            RecoveryAction.manual_entry,
            RecoveryAction.chat_to_resolve,
        ),
    ),
    ErrorCategory.extraction: RecoveryAdvice(
        category=ErrorCategory.extraction,
        title="Could not extract data",
        description="The document structure was not recognized. You can enter the data manually.",
        actions=(
            RecoveryAction.manual_entry,
            RecoveryAction.contact_support,
            RecoveryAction.chat_to_resolve,
        ),
    ),
    ErrorCategory.unknown: RecoveryAdvice(
        category=ErrorCategory.unknown,
        title="Processing failed",
        description="Something went wrong. Please try again or contact support.",
        actions=(
            RecoveryAction.retry,
            RecoveryAction.contact_support,
            RecoveryAction.chat_to_resolve,
        ),
    ),
}


def categorize_error(message: str | None) -> ErrorCategory:
    if not message:
        return ErrorCategory.unknown
    lower = message.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lower for k in keywords):
            return category
    return ErrorCategory.unknown


def get_recovery_advice(category: ErrorCategory) -> RecoveryAdvice:
    return ADVICE[ErrorCategory(category)]


def advise(message: str | None) -> RecoveryAdvice:
    """Categorise *message* and return the matching advice."""
    return get_recovery_advice(categorize_error(message))


# --- Friendly messages for the ingestion boundary ---


class ErrorContext(str, enum.Enum):
    document_upload = "document_upload"
    document_processing = "document_processing"
    csv_import = "csv_import"
    general = "general"


@dataclass(frozen=True)
class FriendlyError:
    message: str
    suggestion: str | None
    is_retryable: bool


@dataclass(frozen=True)
class _Pattern:
    keywords: tuple[str, ...]
    error: FriendlyError
    contexts: frozenset[ErrorContext] | None = None


_PROCESSING = frozenset({ErrorContext.document_processing})
_FILE_CONTEXTS = frozenset({ErrorContext.document_upload, ErrorContext.document_processing})
_EXTRACTION_CONTEXTS = frozenset({ErrorContext.document_processing, ErrorContext.csv_import})

FRIENDLY_PATTERNS = (
    _Pattern(
        ("network", "connection", "fetch failed", "offline", "econnrefused"),
        FriendlyError(
            "We couldn't connect to our servers.",
            "Check your internet connection and try again.",
            True,
        ),
    ),
    _Pattern(
        ("timeout", "timed out", "too long", "exceeded", "etimedout"),
        FriendlyError(
            "This document is taking longer than expected to process.",
            "Try uploading a simpler file, or export your data as CSV for faster processing.",
            True,
        ),
        _PROCESSING,
    ),
    _Pattern(
        ("rate limit", "429", "too many requests"),
        FriendlyError(
            "We're getting a lot of requests right now.",
            "Please wait a moment and try again.",
            True,
        ),
    ),
    _Pattern(
        ("unauthorized", "401", "session expired", "not authenticated"),
        FriendlyError(
            "Your session has expired.",
            "Please refresh the page to sign in again.",
            False,
        ),
    ),
    _Pattern(
        ("not found", "404", "does not exist"),
        FriendlyError(
            "We couldn't find what you're looking for.",
            "It may have been moved or deleted.",
            False,
        ),
    ),
    _Pattern(
        ("unsupported", "invalid file", "corrupt", "cannot read", "format"),
        FriendlyError(
            "We couldn't read this file.",
            "Try exporting it as PDF or CSV from your accounting software.",
            False,
        ),
        _FILE_CONTEXTS,
    ),
    _Pattern(
        ("too large", "file size", "exceeds limit", "processing limit"),
        FriendlyError(
            "This file is too large to upload.",
            "Try splitting it into smaller files or compressing it.",
            False,
        ),
    ),
    _Pattern(
        ("extract", "parse", "no data", "empty", "unrecognized"),
        FriendlyError(
            "We couldn't find any data to import from this file.",
            "Make sure the file contains the data you expect, or try entering it manually.",
            False,
        ),
        _EXTRACTION_CONTEXTS,
    ),
    _Pattern(
        ("duplicate", "already exists", "unique constraint"),
        FriendlyError("This item already exists.", "Try updating the existing one instead.", False),
    ),
    _Pattern(
        ("500", "internal server error", "server error"),
        FriendlyError(
            "Something went wrong on our end.",
            "We're looking into it. Please try again in a moment.",
            True,
        ),
    ),
)

CONTEXT_FALLBACKS = {
    ErrorContext.document_upload: FriendlyError(
        "We had trouble uploading this file.",
        "Please try again, or try a different file.",
        True,
    ),
    ErrorContext.document_processing: FriendlyError(
        "We had trouble processing this document.",
        "Try uploading a CSV file for more reliable processing.",
        True,
    ),
    ErrorContext.csv_import: FriendlyError(
        "We had trouble importing this data.",
        "Check that your CSV has the expected columns and try again.",
        True,
    ),
    ErrorContext.general: FriendlyError("Something went wrong.", "Please try again.", True),
}


def get_friendly_error(
    error: BaseException | str | None,
    context: ErrorContext = ErrorContext.general,
) -> FriendlyError:
    """Turn a technical error into a short message, a suggestion and a retry hint."""
    if isinstance(error, BaseException):
        message = str(error)
    else:
        message = error or ""
    lower = message.lower()
    context = ErrorContext(context)

    for pattern in FRIENDLY_PATTERNS:
        if pattern.contexts is not None and context not in pattern.contexts:
            continue
        if any(k in lower for k in pattern.keywords):
            return pattern.error
    return CONTEXT_FALLBACKS[context]
