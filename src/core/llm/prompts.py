from typing import Any

from src.core.models.enums import ExtractionMode, PDFSchemaType

EXTRACTION_SYSTEM_PROMPT = """<role>
You are a financial document extraction expert for small-business owners.
You turn P&L statements, payroll reports and other financial PDFs into
structured data.
</role>

<rules>
- Extract ALL numeric values you can find
- Use negative numbers for expenses and costs
- If a value is not clearly present, leave the default (never guess)
- Dates must be YYYY-MM-DD
- Currency values are plain numbers without symbols or thousands separators
- NEVER invent line items, employees or amounts
</rules>"""

VISION_PREAMBLE = "Analyze the attached PDF document and extract structured data."

TEXT_PREAMBLE = """Analyze the following text extracted from a PDF document and extract structured data.
The text was extracted automatically, so formatting may be imperfect.

<extracted_text>
{text}
</extracted_text>"""

TABULAR_HINT = (
    "The text looks tabular: read it row by row and keep each label with the "
    "numbers on the same line."
)

SCHEMA_INSTRUCTIONS = {
    PDFSchemaType.pl: """This appears to be a Profit & Loss (P&L) or Income Statement.

Focus on extracting:
- Revenue/Income totals and line items
- Expense categories and amounts
- Net income/profit
- Reporting period dates
- Company name if visible

Set document_type to 'pl', 'income_statement' or 'profit_loss' based on the document title.""",
    PDFSchemaType.payroll: """This appears to be a Payroll document.

Focus on extracting:
- Pay period dates
- Employee names and roles
- Gross pay, taxes, benefits, net pay
- Total payroll amounts
- Employee count

Set document_type to 'payroll', 'payroll_summary' or 'payroll_report' based on the document.""",
    PDFSchemaType.generic: """The document type is unknown.

Extract:
- Any structured financial data you can identify
- Tables as arrays of strings, one string per row
- Any numeric values with their labels

Set document_type to 'unknown'.""",
}


def build_extraction_prompt(
    schema: PDFSchemaType,
    mode: ExtractionMode,
    text: str | None = None,
    tabular: bool = False,
) -> str:
    """User prompt for one extraction attempt."""
    if mode == ExtractionMode.text:
        parts = [TEXT_PREAMBLE.format(text=text or "")]
        if tabular:
            parts.append(TABULAR_HINT)
    else:
        parts = [VISION_PREAMBLE]
    parts.append(SCHEMA_INSTRUCTIONS[PDFSchemaType(schema)])
    return "\n\n".join(parts)


class PromptAdapter:
    """Adapts prompts for different LLM providers with prompt caching."""

    @staticmethod
    def for_claude(
        system: str,
        messages: list[dict[str, Any]],
        cache: bool = True,
    ) -> dict[str, Any]:
        """Format for Anthropic Claude API with 1h TTL prompt caching."""
        system_blocks = [{"type": "text", "text": system}]
        if cache:
            system_blocks[0]["cache_control"] = {"type": "ephemeral", "ttl": "1h"}

        return {
            "system": system_blocks,
            "messages": messages,
        }

    @staticmethod
    def for_openai(
        system: str,
        messages: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Format for OpenAI API (auto-caching)."""
        return {
            "messages": [
                {"role": "system", "content": system},
                *messages,
            ],
        }
