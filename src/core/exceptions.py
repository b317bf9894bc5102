"""Exception hierarchy for the document pipeline.

Messages are user-facing and are later categorised by keyword in
``src.documents.errors``, so each class words its default message to land in
the intended category (format, network, timeout, extraction).
"""


class DocumentPipelineError(Exception):
    """Base exception for all document pipeline errors."""
    pass


class UnsupportedFileError(DocumentPipelineError):
    """File is not a supported type, is empty, too large or corrupt."""
    pass


class StorageError(DocumentPipelineError):
    """Blob store unreachable or rejected the request."""
    pass


class UploadTimeoutError(StorageError):
    """Upload to storage did not finish in time."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Upload timed out after {timeout_seconds:g} seconds")


class ExtractionError(DocumentPipelineError):
    """Input was read but no usable structured data came out of it."""
    pass


class ExtractionTimeoutError(ExtractionError):
    """Remote structured extraction exceeded its time budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"PDF processing timed out after {timeout_seconds:g} seconds. "
            "Complex documents may require alternative processing methods."
        )


class RemoteExtractionError(ExtractionError):
    """Extraction provider could not be reached."""
    pass


class DocumentNotFoundError(DocumentPipelineError):
    """Document does not exist or belongs to another user."""
    pass


class UnauthorizedError(DocumentPipelineError):
    """Caller identity missing or invalid."""
    pass


class InvalidTransitionError(DocumentPipelineError):
    """Requested lifecycle transition is not allowed from the current state."""

    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__(f"Cannot apply '{event}' to a document in state '{current}'")


class SchedulingError(DocumentPipelineError):
    """Processing job could not be queued."""

    def __init__(self, message: str = "Network error: could not queue the document for processing"):
        super().__init__(message)
