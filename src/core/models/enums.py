import enum


class FileType(str, enum.Enum):
    spreadsheet = "spreadsheet"
    pdf = "pdf"


class SpreadsheetType(str, enum.Enum):
    pl = "pl"
    payroll = "payroll"
    employees = "employees"
    unknown = "unknown"


class PDFSchemaType(str, enum.Enum):
    pl = "pl"
    payroll = "payroll"
    generic = "generic"


class ProcessingStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    error = "error"


class ProcessingEvent(str, enum.Enum):
    start = "start"
    succeed = "succeed"
    fail = "fail"
    retry = "retry"


class ProcessingStage(str, enum.Enum):
    idle = "idle"
    uploading = "uploading"
    processing = "processing"
    extracting = "extracting"
    complete = "complete"
    error = "error"


class ExtractionStrategy(str, enum.Enum):
    text_first = "text_first"
    vision_required = "vision_required"


class ExtractionMode(str, enum.Enum):
    text = "text"
    vision = "vision"
