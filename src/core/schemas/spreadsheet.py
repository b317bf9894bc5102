"""Schemas for parsed spreadsheet uploads."""

from typing import Any

from pydantic import BaseModel, Field

from src.core.models.enums import SpreadsheetType


class ParsedCSVData(BaseModel):
    headers: list[str]
    rows: list[dict[str, Any]] = []
    total_rows: int = 0
    detected_type: SpreadsheetType = SpreadsheetType.unknown
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class TypeDetection(BaseModel):
    type: SpreadsheetType
    confidence: float = Field(ge=0.0, le=1.0)
    matched_columns: list[str] = []


class AutoMapping(BaseModel):
    mappings: dict[str, str]
    confidence: float
    required_fields_mapped: int
    total_required_fields: int
    should_auto_apply: bool
    warnings: list[str] = []

    @property
    def has_all_required_fields(self) -> bool:
        return self.required_fields_mapped >= self.total_required_fields
