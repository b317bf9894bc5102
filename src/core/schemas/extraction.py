"""Structured extraction shapes: a closed union of P&L, Payroll and Generic.

The union is discriminated on ``document_type``; each literal set belongs to
exactly one shape, so the effective subtype of any result is unambiguous.
"""

from typing import Annotated, Any, Literal, assert_never

from pydantic import BaseModel, Field, TypeAdapter

from src.core.models.enums import PDFSchemaType


class LineItem(BaseModel):
    description: str = Field(description="Name or description of the line item")
    amount: float = Field(description="Dollar amount for this line item")


class ExpenseCategory(BaseModel):
    category: str = Field(description='Category name (e.g. "Payroll", "Marketing", "Rent")')
    amount: float = Field(description="Total amount for this category")
    line_items: list[LineItem] = Field(default_factory=list)


class ReportingPeriod(BaseModel):
    start_date: str = Field(default="", description="YYYY-MM-DD, empty string if unknown")
    end_date: str = Field(default="", description="YYYY-MM-DD, empty string if unknown")


class RevenueSection(BaseModel):
    total: float = 0
    line_items: list[LineItem] = Field(default_factory=list)


class ExpenseSection(BaseModel):
    total: float = 0
    categories: list[ExpenseCategory] = Field(default_factory=list)


class PLMetadata(BaseModel):
    company_name: str = ""
    prepared_by: str = ""
    page_count: int = 1


class PLExtraction(BaseModel):
    document_type: Literal["pl", "income_statement", "profit_loss"] = "pl"
    period: ReportingPeriod = Field(default_factory=ReportingPeriod)
    revenue: RevenueSection = Field(default_factory=RevenueSection)
    expenses: ExpenseSection = Field(default_factory=ExpenseSection)
    net_income: float = Field(default=0, description="Revenue minus expenses, 0 if unknown")
    metadata: PLMetadata = Field(default_factory=PLMetadata)


class EmployeePay(BaseModel):
    name: str = ""
    role: str = ""
    hours_worked: float = 0
    gross_pay: float = 0
    taxes: float = 0
    benefits: float = 0
    net_pay: float = 0


class PayrollTotals(BaseModel):
    total_gross_pay: float = 0
    total_taxes: float = 0
    total_benefits: float = 0
    total_net_pay: float = 0
    employee_count: int = 0


class PayrollMetadata(BaseModel):
    company_name: str = ""
    payroll_provider: str = ""


class PayrollExtraction(BaseModel):
    document_type: Literal["payroll", "payroll_summary", "payroll_report"] = "payroll"
    pay_period: ReportingPeriod = Field(default_factory=ReportingPeriod)
    employees: list[EmployeePay] = Field(default_factory=list)
    totals: PayrollTotals = Field(default_factory=PayrollTotals)
    metadata: PayrollMetadata = Field(default_factory=PayrollMetadata)


class LabeledNumber(BaseModel):
    label: str = ""
    value: float


class GenericExtraction(BaseModel):
    document_type: Literal["unknown"] = "unknown"
    raw_content: str = ""
    tables: list[list[str]] = Field(default_factory=list)
    numbers: list[LabeledNumber] = Field(default_factory=list)


ExtractionResult = Annotated[
    PLExtraction | PayrollExtraction | GenericExtraction,
    Field(discriminator="document_type"),
]

extraction_adapter: TypeAdapter[ExtractionResult] = TypeAdapter(ExtractionResult)

SCHEMA_MODELS: dict[PDFSchemaType, type[BaseModel]] = {
    PDFSchemaType.pl: PLExtraction,
    PDFSchemaType.payroll: PayrollExtraction,
    PDFSchemaType.generic: GenericExtraction,
}


def parse_extraction(data: dict[str, Any]) -> PLExtraction | PayrollExtraction | GenericExtraction:
    """Validate a stored or returned payload into its tagged shape."""
    return extraction_adapter.validate_python(data)


def schema_type_of(result: PLExtraction | PayrollExtraction | GenericExtraction) -> PDFSchemaType:
    match result:
        case PLExtraction():
            return PDFSchemaType.pl
        case PayrollExtraction():
            return PDFSchemaType.payroll
        case GenericExtraction():
            return PDFSchemaType.generic
        case _:
            assert_never(result)


def schema_type_from_data(data: dict[str, Any] | None) -> PDFSchemaType | None:
    """Effective subtype of a persisted payload, ``None`` when there is none."""
    if not data or not data.get("document_type"):
        return None
    doc_type = data["document_type"]
    if doc_type in ("pl", "income_statement", "profit_loss"):
        return PDFSchemaType.pl
    if doc_type in ("payroll", "payroll_summary", "payroll_report"):
        return PDFSchemaType.payroll
    return PDFSchemaType.generic

