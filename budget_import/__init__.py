"""Budget Sheet Import Pipeline.

Turns a decoded construction budget spreadsheet (a rectangular grid of
cell strings) into typed cost line items with warnings and provenance.

Stages:
- Column mapping: find the header row and assign column roles
- Extraction: classify rows, split compound rows, reconcile totals
- Enrichment (optional): categorize items, falling back to rules
"""

from budget_import.models.grid import Grid
from budget_import.services.column_mapper import ColumnMapper
from budget_import.services.line_item_extractor import LineItemExtractor
from budget_import.services.import_orchestrator import ImportOrchestrator, build_import_summary

__version__ = "1.0.0"

__all__ = [
    "Grid",
    "ColumnMapper",
    "LineItemExtractor",
    "ImportOrchestrator",
    "build_import_summary",
]
