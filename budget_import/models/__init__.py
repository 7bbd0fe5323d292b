"""Pydantic models for budget sheet import."""

from budget_import.models.grid import Grid
from budget_import.models.warnings import ImportWarning, WarningCode
from budget_import.models.column_mapping import (
    BudgetColumns,
    ColumnMappingResult,
    ColumnRole,
    COST_ROLES,
)
from budget_import.models.line_item import (
    CostComponent,
    EnrichedLineItem,
    ExtractedLineItem,
    ItemCategory,
    RawCells,
)
from budget_import.models.import_result import (
    ComputedTotals,
    ExtractionMetadata,
    ExtractionResult,
    ImportMetadata,
    ImportResult,
    ImportSummary,
)

__all__ = [
    "Grid",
    "ImportWarning",
    "WarningCode",
    "BudgetColumns",
    "ColumnMappingResult",
    "ColumnRole",
    "COST_ROLES",
    "CostComponent",
    "EnrichedLineItem",
    "ExtractedLineItem",
    "ItemCategory",
    "RawCells",
    "ComputedTotals",
    "ExtractionMetadata",
    "ExtractionResult",
    "ImportMetadata",
    "ImportResult",
    "ImportSummary",
]
