"""Tests for schema mapping (remote PDF extraction and local spreadsheet mapping)."""

import anthropic
import httpx
import openai
import pytest

from src.core.exceptions import (
    ExtractionError,
    ExtractionTimeoutError,
    RemoteExtractionError,
)
from src.core.models.enums import ExtractionMode, PDFSchemaType, SpreadsheetType
from src.core.observability import RecordingSink
from src.core.schemas.extraction import (
    GenericExtraction,
    PayrollExtraction,
    PLExtraction,
)
from src.documents.auto_mapper import auto_map_columns
from src.documents.errors import ErrorCategory, categorize_error
from src.documents.schema_mapper import (
    ExtractionRequest,
    SchemaMapper,
    is_empty_extraction,
    map_spreadsheet,
    parse_date,
    translate_provider_error,
)
from src.documents.spreadsheet import read_csv

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/extract")


def _request(schema=PDFSchemaType.payroll, mode=ExtractionMode.text):
    return ExtractionRequest(mode=mode, schema=schema, filename="payroll.pdf", text="Jane 4000")


# --- SchemaMapper.map_pdf ---


@pytest.mark.asyncio
async def test_map_pdf_returns_requested_shape(make_extractor, payroll_extraction):
    sink = RecordingSink()
    mapper = SchemaMapper(make_extractor(default=payroll_extraction), 5.0, sink=sink)

    result = await mapper.map_pdf(_request())

    assert isinstance(result, PayrollExtraction)
    assert sink.last("schema_mapper.mapped")["effective_schema"] == "payroll"


@pytest.mark.asyncio
async def test_map_pdf_accepts_dict_payload(make_extractor):
    payload = {"document_type": "profit_loss", "revenue": {"total": 1000}, "net_income": 400}
    mapper = SchemaMapper(make_extractor(default=payload), 5.0)

    result = await mapper.map_pdf(_request(PDFSchemaType.pl))

    assert isinstance(result, PLExtraction)
    assert result.revenue.total == 1000


@pytest.mark.asyncio
async def test_model_may_return_different_subtype(make_extractor, generic_extraction):
    mapper = SchemaMapper(make_extractor(default=generic_extraction), 5.0)
    result = await mapper.map_pdf(_request(PDFSchemaType.pl))
    assert isinstance(result, GenericExtraction)


@pytest.mark.asyncio
async def test_empty_result_falls_back_to_generic(make_extractor, generic_extraction):
    sink = RecordingSink()
    extractor = make_extractor(
        {
            (ExtractionMode.text, PDFSchemaType.payroll): PayrollExtraction(),
            (ExtractionMode.text, PDFSchemaType.generic): generic_extraction,
        }
    )
    mapper = SchemaMapper(extractor, 5.0, sink=sink)

    result = await mapper.map_pdf(_request())

    assert isinstance(result, GenericExtraction)
    assert [r.schema for r in extractor.requests] == [PDFSchemaType.payroll, PDFSchemaType.generic]
    assert sink.last("schema_mapper.schema_fallback")["from_schema"] == "payroll"


@pytest.mark.asyncio
async def test_empty_generic_result_is_extraction_error(make_extractor):
    mapper = SchemaMapper(make_extractor(default=GenericExtraction()), 5.0)

    with pytest.raises(ExtractionError, match="No data could be extracted") as exc_info:
        await mapper.map_pdf(_request())
    assert categorize_error(str(exc_info.value)) == ErrorCategory.extraction


@pytest.mark.asyncio
async def test_hanging_extractor_times_out_without_schema_fallback(make_extractor):
    extractor = make_extractor(default="hang")
    mapper = SchemaMapper(extractor, 0.05)

    with pytest.raises(ExtractionTimeoutError) as exc_info:
        await mapper.map_pdf(_request())

    assert len(extractor.requests) == 1
    assert categorize_error(str(exc_info.value)) == ErrorCategory.timeout


@pytest.mark.asyncio
async def test_remote_error_propagates_untouched(make_extractor):
    error = RemoteExtractionError("Network error: could not reach the extraction service")
    extractor = make_extractor(default=error)
    mapper = SchemaMapper(extractor, 5.0)

    with pytest.raises(RemoteExtractionError):
        await mapper.map_pdf(_request())
    assert len(extractor.requests) == 1


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_extraction_error(make_extractor):
    mapper = SchemaMapper(make_extractor(default=RuntimeError("boom")), 5.0)
    with pytest.raises(ExtractionError, match="Could not extract structured data"):
        await mapper.map_pdf(_request())


@pytest.mark.asyncio
async def test_unrecognized_result_rejected(make_extractor):
    mapper = SchemaMapper(make_extractor(default="free text answer"), 5.0)
    with pytest.raises(ExtractionError, match="Unrecognized extraction result"):
        await mapper.map_pdf(_request(PDFSchemaType.generic))


def test_is_empty_extraction(payroll_extraction):
    assert is_empty_extraction(PLExtraction())
    assert is_empty_extraction(PayrollExtraction())
    assert is_empty_extraction(GenericExtraction(raw_content="   "))
    assert not is_empty_extraction(payroll_extraction)
    assert not is_empty_extraction(PLExtraction(net_income=-50))


# --- Provider error translation ---


def test_translate_timeouts():
    assert isinstance(
        translate_provider_error(openai.APITimeoutError(request=_REQUEST), 30), ExtractionTimeoutError
    )
    assert isinstance(
        translate_provider_error(anthropic.APITimeoutError(request=_REQUEST), 30),
        ExtractionTimeoutError,
    )
    assert isinstance(translate_provider_error(TimeoutError(), 30), ExtractionTimeoutError)


def test_translate_connection_error_is_network():
    error = translate_provider_error(openai.APIConnectionError(request=_REQUEST), 30)
    assert isinstance(error, RemoteExtractionError)
    assert categorize_error(str(error)) == ErrorCategory.network


def test_translate_rate_limit_is_timeout_category():
    response = httpx.Response(429, request=_REQUEST)
    error = translate_provider_error(
        anthropic.RateLimitError("slow down", response=response, body=None), 30
    )
    assert isinstance(error, RemoteExtractionError)
    assert categorize_error(str(error)) == ErrorCategory.timeout


def test_translate_follows_exception_chain():
    try:
        try:
            raise openai.APIConnectionError(request=_REQUEST)
        except openai.APIConnectionError as inner:
            raise ValueError("wrapped") from inner
    except ValueError as outer:
        error = translate_provider_error(outer, 30)
    assert isinstance(error, RemoteExtractionError)


def test_translate_anything_else_is_extraction():
    error = translate_provider_error(ValueError("validation failed"), 30)
    assert type(error) is ExtractionError
    assert categorize_error(str(error)) == ErrorCategory.extraction


# --- Local spreadsheet mapping ---


def _map_csv(content: bytes, sheet_type: SpreadsheetType):
    headers, rows = read_csv(content)
    return map_spreadsheet(headers, rows, sheet_type, auto_map_columns(headers, sheet_type))


def test_payroll_csv_maps_to_payroll(payroll_csv):
    result = _map_csv(payroll_csv, SpreadsheetType.payroll)

    assert isinstance(result, PayrollExtraction)
    assert [e.name for e in result.employees] == ["Jane Smith", "John Doe"]
    assert result.totals.total_gross_pay == 6880
    assert result.totals.total_net_pay == 5400
    assert result.totals.employee_count == 2
    assert result.pay_period.start_date == "2026-03-15"


def test_payroll_gross_computed_from_hours_and_rate():
    content = b"Employee Name,Hours,Rate,Gross Pay\nJane,10,25,\nJohn,5,20,\n"
    result = _map_csv(content, SpreadsheetType.payroll)
    assert [e.gross_pay for e in result.employees] == [250, 100]


def test_pl_csv_maps_revenue_and_negative_expenses(pl_csv):
    result = _map_csv(pl_csv, SpreadsheetType.pl)

    assert isinstance(result, PLExtraction)
    assert result.revenue.total == 12000
    assert [c.category for c in result.expenses.categories] == ["Rent", "Payroll"]
    assert result.expenses.total == -8500
    assert result.net_income == 3500
    assert result.period.start_date == "2026-01-31"
    assert result.period.end_date == "2026-02-28"


def test_pl_cost_of_sales_is_an_expense():
    content = (
        b"Category,Description,Amount\n"
        b"Revenue,Consulting,10000\n"
        b"Cost of Sales,Materials,4000\n"
        b"Sales Tax,Q1 remittance,500\n"
    )
    result = _map_csv(content, SpreadsheetType.pl)

    assert result.revenue.total == 10000
    assert [c.category for c in result.expenses.categories] == ["Cost of Sales", "Sales Tax"]
    assert result.expenses.total == -4500
    assert result.net_income == 5500


def test_pl_transaction_type_column_decides_income():
    content = (
        b"Date,Category,Description,Amount,Type\n"
        b"2026-01-31,Services,Consulting,10000,Income\n"
        b"2026-01-31,Sales,Refund issued,300,Expense\n"
        b"2026-02-01,Interest,Bank interest,50,credit\n"
    )
    result = _map_csv(content, SpreadsheetType.pl)

    assert [i.description for i in result.revenue.line_items] == ["Consulting", "Bank interest"]
    assert result.revenue.total == 10050
    assert result.expenses.total == -300
    assert result.net_income == 9750


def test_roster_maps_to_generic_with_salaries():
    content = b"Name,Role,Annual Salary\nJane,Engineer,90000\nJohn,Designer,80000\n"
    result = _map_csv(content, SpreadsheetType.employees)

    assert isinstance(result, GenericExtraction)
    assert [n.label for n in result.numbers] == ["Jane annual salary", "John annual salary"]
    assert result.raw_content == "Employee roster with 2 rows"


def test_unknown_sheet_maps_to_generic_table():
    result = _map_csv(b"x,y\na,5\n", SpreadsheetType.unknown)

    assert isinstance(result, GenericExtraction)
    assert result.tables == [["x, y", "a, 5"]]
    assert [(n.label, n.value) for n in result.numbers] == [("y (row 1)", 5)]


def test_pl_without_required_columns_falls_back_to_generic():
    result = _map_csv(b"Month,Total\nJan,100\n", SpreadsheetType.pl)
    assert isinstance(result, GenericExtraction)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2026-03-15", "2026-03-15"),
        ("03/15/2026", "2026-03-15"),
        ("15.03.2026", "2026-03-15"),
        ("March 2026", "2026-03-01"),
        ("soon", None),
        (None, None),
        (42, None),
    ],
)
def test_parse_date(value, expected):
    parsed = parse_date(value)
    assert (parsed.isoformat() if parsed else None) == expected
