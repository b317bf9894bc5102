"""Map spreadsheet column headers onto the fields of a detected sheet type.

Each header takes the best still-unused target field. Exact matches (against
the field name or one of its synonyms) score 1.0, containment either way
scores 0.7. Overall confidence weights required fields at 70% and the mean
column score at 30%; a mapping is auto-applied at 0.8 or above, and only
when every required field is mapped.
"""

import re

from src.core.models.enums import SpreadsheetType
from src.core.schemas.spreadsheet import AutoMapping

IGNORE = "ignore"

EXACT_MATCH = 1.0
PARTIAL_MATCH = 0.7
# Required fields matched below this get a warning.
CONFIDENT_MATCH = 0.85
AUTO_APPLY_THRESHOLD = 0.8

TARGET_FIELDS: dict[SpreadsheetType, tuple[str, ...]] = {
    SpreadsheetType.pl: (
        "revenue",
        "expense_category",
        "expense_amount",
        "date",
        "description",
        "transaction_type",
    ),
    SpreadsheetType.payroll: (
        "employee_name",
        "employee_id",
        "hours_worked",
        "hourly_rate",
        "gross_pay",
        "net_pay",
        "pay_date",
    ),
    SpreadsheetType.employees: (
        "name",
        "employee_id",
        "role",
        "department",
        "annual_salary",
        "annual_benefits",
        "employment_type",
    ),
    SpreadsheetType.unknown: (),
}

REQUIRED_FIELDS: dict[SpreadsheetType, tuple[str, ...]] = {
    SpreadsheetType.pl: ("description", "expense_amount"),
    SpreadsheetType.payroll: ("employee_name", "gross_pay"),
    SpreadsheetType.employees: ("name", "role"),
    SpreadsheetType.unknown: (),
}

COLUMN_SYNONYMS: dict[SpreadsheetType, dict[str, tuple[str, ...]]] = {
    SpreadsheetType.pl: {
        "revenue": ("revenue", "income", "sales", "total_income", "total_revenue"),
        "expense_category": (
            "category",
            "expense_category",
            "account",
            "account_name",
            "type",
            "expense_type",
            "cost_center",
        ),
        "expense_amount": (
            "amount",
            "expense_amount",
            "value",
            "total",
            "cost",
            "expense",
            "debit",
            "credit",
        ),
        "date": ("date", "transaction_date", "period", "month", "year", "posting_date"),
        "description": ("description", "memo", "notes", "details", "line_item", "item", "name"),
        "transaction_type": ("type", "transaction_type", "entry_type", "income_expense", "dr_cr"),
    },
    SpreadsheetType.payroll: {
        "employee_name": ("name", "employee_name", "employee", "full_name", "staff_name", "worker"),
        "employee_id": ("id", "employee_id", "emp_id", "staff_id", "employee_number", "emp_no"),
        "hours_worked": ("hours", "hours_worked", "total_hours", "work_hours", "regular_hours"),
        "hourly_rate": ("rate", "hourly_rate", "pay_rate", "hour_rate"),
        "gross_pay": (
            "gross",
            "gross_pay",
            "gross_wages",
            "gross_earnings",
            "total_pay",
            "total_earnings",
        ),
        "net_pay": ("net", "net_pay", "net_wages", "take_home", "net_earnings"),
        "pay_date": ("date", "pay_date", "payment_date", "check_date", "period_end"),
    },
    SpreadsheetType.employees: {
        "name": ("name", "full_name", "employee_name", "employee", "staff_name", "first_last"),
        "employee_id": ("id", "employee_id", "emp_id", "staff_id", "employee_number"),
        "role": ("role", "title", "job_title", "position", "job", "designation"),
        "department": ("department", "dept", "team", "division", "group", "unit"),
        "annual_salary": (
            "salary",
            "annual_salary",
            "yearly_salary",
            "base_salary",
            "compensation",
        ),
        "annual_benefits": ("benefits", "annual_benefits", "total_benefits", "benefit_cost"),
        "employment_type": (
            "type",
            "employment_type",
            "emp_type",
            "status",
            "full_part_time",
            "ft_pt",
        ),
    },
    SpreadsheetType.unknown: {},
}

_SEPARATORS = re.compile(r"[_\s-]+")


def normalize_header(value: str) -> str:
    return _SEPARATORS.sub("_", value.lower().strip())


def column_match_confidence(header: str, target_field: str, synonyms: tuple[str, ...]) -> float:
    normalized = normalize_header(header)
    if not normalized:
        return 0.0
    candidates = [normalize_header(target_field), *(normalize_header(s) for s in synonyms)]
    if normalized in candidates:
        return EXACT_MATCH
    if any(c in normalized or normalized in c for c in candidates[1:]):
        return PARTIAL_MATCH
    return 0.0


def auto_map_columns(headers: list[str], sheet_type: SpreadsheetType) -> AutoMapping:
    sheet_type = SpreadsheetType(sheet_type)
    targets = TARGET_FIELDS[sheet_type]
    synonyms = COLUMN_SYNONYMS[sheet_type]
    required = REQUIRED_FIELDS[sheet_type]

    mappings: dict[str, str] = {}
    scores: dict[str, float] = {}
    warnings: list[str] = []
    used: set[str] = set()

    for header in headers:
        best_field, best_score = IGNORE, 0.0
        for field in targets:
            if field in used:
                continue
            score = column_match_confidence(header, field, synonyms.get(field, ()))
            if score > best_score:
                best_field, best_score = field, score

        mappings[header] = best_field
        if best_score > 0:
            used.add(best_field)
            scores[header] = best_score
            if best_score < CONFIDENT_MATCH and best_field in required:
                warnings.append(f'"{header}" -> {best_field} (low confidence)')

    required_scores = [scores[h] for h, f in mappings.items() if f in required]
    required_mapped = len(required_scores)

    if required:
        mean_required = sum(required_scores) / max(required_mapped, 1)
        required_weight = (required_mapped / len(required)) * mean_required
    else:
        required_weight = 1.0
    overall = sum(scores.values()) / len(scores) if scores else 0.0
    confidence = round(required_weight * 0.7 + overall * 0.3, 2)

    return AutoMapping(
        mappings=mappings,
        confidence=confidence,
        required_fields_mapped=required_mapped,
        total_required_fields=len(required),
        should_auto_apply=confidence >= AUTO_APPLY_THRESHOLD and required_mapped == len(required),
        warnings=warnings,
    )


def columns_for_fields(mappings: dict[str, str]) -> dict[str, str]:
    """Invert a header->field mapping, dropping ignored columns."""
    return {field: header for header, field in mappings.items() if field != IGNORE}


def mapping_confidence_label(confidence: float) -> str:
    if confidence >= 0.9:
        return "High confidence"
    if confidence >= 0.8:
        return "Good confidence"
    if confidence >= 0.6:
        return "Moderate confidence"
    if confidence >= 0.4:
        return "Low confidence"
    return "Very low confidence"
