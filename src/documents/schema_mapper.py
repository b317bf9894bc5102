"""Schema mapping: turn document content into one of the extraction shapes.

PDFs go through a ``StructuredExtractor`` (a remote model behind instructor).
Spreadsheets are mapped locally from their auto-mapped columns.
"""

import asyncio
import base64
import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Protocol

import anthropic
import openai

from src.core.exceptions import (
    DocumentPipelineError,
    ExtractionError,
    ExtractionTimeoutError,
    RemoteExtractionError,
)
from src.core.llm.clients import get_instructor_anthropic, get_instructor_openai
from src.core.llm.prompts import EXTRACTION_SYSTEM_PROMPT, PromptAdapter, build_extraction_prompt
from src.core.llm.router import get_model_for_mode
from src.core.models.enums import ExtractionMode, PDFSchemaType, SpreadsheetType
from src.core.observability import NULL_SINK, ObservabilitySink, observe
from src.core.schemas.extraction import (
    SCHEMA_MODELS,
    EmployeePay,
    ExpenseCategory,
    ExpenseSection,
    GenericExtraction,
    LabeledNumber,
    LineItem,
    PayrollExtraction,
    PayrollTotals,
    PLExtraction,
    ReportingPeriod,
    RevenueSection,
    parse_extraction,
    schema_type_of,
)
from src.core.schemas.spreadsheet import AutoMapping
from src.documents.auto_mapper import columns_for_fields
from src.documents.spreadsheet import parse_amount

logger = logging.getLogger(__name__)

Extraction = PLExtraction | PayrollExtraction | GenericExtraction

MAX_OUTPUT_TOKENS = 8192
# Rows kept verbatim in a generic spreadsheet result.
GENERIC_TABLE_ROWS = 500
GENERIC_NUMBER_ROWS = 50


@dataclass(frozen=True)
class ExtractionRequest:
    mode: ExtractionMode
    schema: PDFSchemaType
    filename: str | None = None
    text: str | None = None
    content: bytes | None = None
    tabular: bool = False


class StructuredExtractor(Protocol):
    """Remote structured-output capability. Must honour *timeout* (seconds)."""

    async def extract(self, request: ExtractionRequest, *, timeout: float) -> Any: ...


def _error_chain(error: BaseException):
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def translate_provider_error(error: Exception, timeout: float) -> DocumentPipelineError:
    """Map an SDK exception to the pipeline's exception hierarchy."""
    for exc in _error_chain(error):
        if isinstance(exc, (openai.APITimeoutError, anthropic.APITimeoutError, TimeoutError)):
            return ExtractionTimeoutError(timeout)
        if isinstance(exc, (openai.APIConnectionError, anthropic.APIConnectionError)):
            return RemoteExtractionError(
                "Network error: could not reach the extraction service"
            )
        if isinstance(exc, (openai.RateLimitError, anthropic.RateLimitError)):
            return RemoteExtractionError("Extraction service rate limit reached, try again shortly")
    return ExtractionError("Could not extract structured data from the document")


class InstructorExtractor:
    """Structured extraction through instructor over OpenAI or Anthropic."""

    @observe(name="document_extract")
    async def extract(self, request: ExtractionRequest, *, timeout: float) -> Extraction:
        config = get_model_for_mode(request.mode)
        response_model = SCHEMA_MODELS[request.schema]
        prompt = build_extraction_prompt(
            request.schema, request.mode, text=request.text, tabular=request.tabular
        )
        try:
            if config.provider == "anthropic":
                client = get_instructor_anthropic()
                return await client.messages.create(
                    model=config.model_id,
                    max_tokens=MAX_OUTPUT_TOKENS,
                    response_model=response_model,
                    max_retries=1,
                    timeout=timeout,
                    **PromptAdapter.for_claude(
                        EXTRACTION_SYSTEM_PROMPT,
                        [{"role": "user", "content": self._anthropic_content(request, prompt)}],
                    ),
                )
            client = get_instructor_openai()
            return await client.chat.completions.create(
                model=config.model_id,
                max_completion_tokens=MAX_OUTPUT_TOKENS,
                response_model=response_model,
                max_retries=1,
                timeout=timeout,
                **PromptAdapter.for_openai(
                    EXTRACTION_SYSTEM_PROMPT,
                    [{"role": "user", "content": self._openai_content(request, prompt)}],
                ),
            )
        except Exception as e:
            logger.warning(
                "Extraction call failed (%s %s): %s", config.provider, config.model_id, e
            )
            raise translate_provider_error(e, timeout) from e

    @staticmethod
    def _openai_content(request: ExtractionRequest, prompt: str) -> str | list[dict]:
        if request.mode == ExtractionMode.text or not request.content:
            return prompt
        data = base64.b64encode(request.content).decode()
        return [
            {
                "type": "file",
                "file": {
                    "filename": request.filename or "document.pdf",
                    "file_data": f"data:application/pdf;base64,{data}",
                },
            },
            {"type": "text", "text": prompt},
        ]

    @staticmethod
    def _anthropic_content(request: ExtractionRequest, prompt: str) -> str | list[dict]:
        if request.mode == ExtractionMode.text or not request.content:
            return prompt
        return [
            {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": base64.b64encode(request.content).decode(),
                },
            },
            {"type": "text", "text": prompt},
        ]


def is_empty_extraction(result: Extraction) -> bool:
    match result:
        case PLExtraction():
            return (
                not result.revenue.line_items
                and not result.expenses.categories
                and not (result.revenue.total or result.expenses.total or result.net_income)
            )
        case PayrollExtraction():
            return not result.employees and not result.totals.total_gross_pay
        case GenericExtraction():
            return not (result.raw_content.strip() or result.tables or result.numbers)
    return True


class SchemaMapper:
    """Runs PDF extraction attempts under a time budget.

    A schema that yields nothing usable is retried once with the generic
    schema. Timeouts and provider errors are raised to the caller untouched.
    """

    def __init__(
        self,
        extractor: StructuredExtractor,
        timeout_seconds: float,
        sink: ObservabilitySink = NULL_SINK,
    ):
        self.extractor = extractor
        self.timeout_seconds = timeout_seconds
        self.sink = sink

    async def _attempt(self, request: ExtractionRequest) -> Extraction:
        try:
            result = await asyncio.wait_for(
                self.extractor.extract(request, timeout=self.timeout_seconds),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            raise ExtractionTimeoutError(self.timeout_seconds)
        except DocumentPipelineError:
            raise
        except Exception as e:
            logger.warning("Extractor raised %s: %s", type(e).__name__, e)
            raise ExtractionError("Could not extract structured data from the document") from e

        if isinstance(result, dict):
            try:
                result = parse_extraction(result)
            except ValueError as e:
                raise ExtractionError("Unrecognized extraction result from the model") from e
        if not isinstance(result, (PLExtraction, PayrollExtraction, GenericExtraction)):
            raise ExtractionError("Unrecognized extraction result from the model")
        if is_empty_extraction(result):
            raise ExtractionError("No data could be extracted from the document")
        return result

    async def map_pdf(self, request: ExtractionRequest) -> Extraction:
        try:
            result = await self._attempt(request)
        except (ExtractionTimeoutError, RemoteExtractionError):
            raise
        except ExtractionError as e:
            if request.schema == PDFSchemaType.generic:
                raise
            logger.info("Schema %s produced nothing usable (%s), trying generic", request.schema, e)
            self.sink.event(
                "schema_mapper.schema_fallback",
                mode=request.mode.value,
                from_schema=request.schema.value,
                reason=str(e),
            )
            result = await self._attempt(replace(request, schema=PDFSchemaType.generic))

        self.sink.event(
            "schema_mapper.mapped",
            mode=request.mode.value,
            requested_schema=request.schema.value,
            effective_schema=schema_type_of(result).value,
        )
        return result


# --- Local spreadsheet mapping ---

# Category names that mean income when no transaction type column is mapped.
_INCOME_CATEGORY = re.compile(
    r"^(?:(?:other|operating|sales|service)\s+)?(?:revenue|income|sales)$", re.IGNORECASE
)
_CREDIT_TYPES = frozenset({"credit", "cr"})
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%d.%m.%Y", "%Y-%m", "%b %Y", "%B %Y")


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _cell(row: dict[str, Any], columns: dict[str, str], field: str) -> Any:
    header = columns.get(field)
    return row.get(header) if header else None


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _period(values: list[Any]) -> ReportingPeriod:
    dates = [d for d in (parse_date(v) for v in values) if d is not None]
    if not dates:
        return ReportingPeriod()
    return ReportingPeriod(start_date=min(dates).isoformat(), end_date=max(dates).isoformat())


def _is_income(row: dict[str, Any], columns: dict[str, str], category: str) -> bool:
    """Income when the type column says so; without one, only a plain revenue category counts."""
    entry_type = _text(_cell(row, columns, "transaction_type")).lower()
    if entry_type:
        return "income" in entry_type or "revenue" in entry_type or entry_type in _CREDIT_TYPES
    return bool(_INCOME_CATEGORY.match(category))


def _map_pl(rows: list[dict[str, Any]], columns: dict[str, str]) -> PLExtraction:
    revenue_items: list[LineItem] = []
    categories: dict[str, ExpenseCategory] = {}

    for row in rows:
        label = _text(_cell(row, columns, "description"))
        category = _text(_cell(row, columns, "expense_category"))
        name = label or category or "Line item"

        revenue = parse_amount(_cell(row, columns, "revenue"))
        if revenue is not None:
            revenue_items.append(LineItem(description=label or "Revenue", amount=revenue))

        amount = parse_amount(_cell(row, columns, "expense_amount"))
        if amount is None:
            continue
        if _is_income(row, columns, category):
            revenue_items.append(LineItem(description=name, amount=abs(amount)))
            continue
        key = category or "Uncategorized"
        bucket = categories.setdefault(key, ExpenseCategory(category=key, amount=0))
        bucket.line_items.append(LineItem(description=name, amount=-abs(amount)))
        bucket.amount = round(bucket.amount - abs(amount), 2)

    revenue_total = round(sum(i.amount for i in revenue_items), 2)
    expense_total = round(sum(c.amount for c in categories.values()), 2)
    return PLExtraction(
        period=_period([_cell(r, columns, "date") for r in rows]),
        revenue=RevenueSection(total=revenue_total, line_items=revenue_items),
        expenses=ExpenseSection(total=expense_total, categories=list(categories.values())),
        net_income=round(revenue_total + expense_total, 2),
    )


def _map_payroll(rows: list[dict[str, Any]], columns: dict[str, str]) -> PayrollExtraction:
    employees: list[EmployeePay] = []
    for row in rows:
        name = _text(_cell(row, columns, "employee_name"))
        if not name:
            continue
        hours = parse_amount(_cell(row, columns, "hours_worked")) or 0
        rate = parse_amount(_cell(row, columns, "hourly_rate"))
        gross = parse_amount(_cell(row, columns, "gross_pay"))
        if gross is None and hours and rate:
            gross = round(hours * rate, 2)
        employees.append(
            EmployeePay(
                name=name,
                hours_worked=hours,
                gross_pay=gross or 0,
                net_pay=parse_amount(_cell(row, columns, "net_pay")) or 0,
            )
        )

    return PayrollExtraction(
        pay_period=_period([_cell(r, columns, "pay_date") for r in rows]),
        employees=employees,
        totals=PayrollTotals(
            total_gross_pay=round(sum(e.gross_pay for e in employees), 2),
            total_net_pay=round(sum(e.net_pay for e in employees), 2),
            employee_count=len(employees),
        ),
    )


def _table(headers: list[str], rows: list[dict[str, Any]]) -> list[str]:
    lines = [", ".join(headers)]
    for row in rows[:GENERIC_TABLE_ROWS]:
        lines.append(", ".join(_text(row.get(h)) for h in headers))
    return lines


def _map_generic(
    headers: list[str],
    rows: list[dict[str, Any]],
    columns: dict[str, str],
    sheet_type: SpreadsheetType,
) -> GenericExtraction:
    numbers: list[LabeledNumber] = []
    if sheet_type == SpreadsheetType.employees:
        for row in rows:
            name = _text(_cell(row, columns, "name")) or "Employee"
            salary = parse_amount(_cell(row, columns, "annual_salary"))
            if salary is not None:
                numbers.append(LabeledNumber(label=f"{name} annual salary", value=salary))
        raw_content = f"Employee roster with {len(rows)} rows"
    else:
        for index, row in enumerate(rows[:GENERIC_NUMBER_ROWS], start=1):
            for header in headers:
                value = row.get(header)
                if isinstance(value, int | float) and not isinstance(value, bool):
                    numbers.append(LabeledNumber(label=f"{header} (row {index})", value=value))
        raw_content = f"Spreadsheet with {len(headers)} columns and {len(rows)} rows"

    return GenericExtraction(raw_content=raw_content, tables=[_table(headers, rows)], numbers=numbers)


def map_spreadsheet(
    headers: list[str],
    rows: list[dict[str, Any]],
    sheet_type: SpreadsheetType,
    mapping: AutoMapping,
) -> Extraction:
    """Build an extraction result from parsed rows and their column mapping.

    P&L and payroll sheets fall back to the generic shape when their required
    columns are missing or nothing usable came out of the rows.
    """
    columns = columns_for_fields(mapping.mappings)
    result: Extraction | None = None
    if mapping.has_all_required_fields:
        if sheet_type == SpreadsheetType.pl:
            result = _map_pl(rows, columns)
        elif sheet_type == SpreadsheetType.payroll:
            result = _map_payroll(rows, columns)
    if result is None or is_empty_extraction(result):
        result = _map_generic(headers, rows, columns, sheet_type)
    return result
