"""Budget import services.

This package contains:
- vocabulary / cell_parser: header rulesets and cell parsing
- column_mapper: header row detection and column roles
- line_item_extractor: row classification and line item extraction
- categorizer: rule-based categories and labor pricing
- enricher / llm_service: optional LLM categorization
- import_orchestrator: end-to-end import run
"""

from budget_import.services.warning_collector import WarningCollector
from budget_import.services.column_mapper import ColumnMapper, compute_mapping_confidence
from budget_import.services.line_item_extractor import LineItemExtractor
from budget_import.services.categorizer import assign_category, labor_rate_fields
from budget_import.services.llm_service import LLMService
from budget_import.services.enricher import (
    Enricher,
    EnrichmentResponse,
    LLMEnricher,
    UnavailableEnricher,
    create_enricher,
)
from budget_import.services.import_orchestrator import ImportOrchestrator, build_import_summary

__all__ = [
    "WarningCollector",
    "ColumnMapper",
    "compute_mapping_confidence",
    "LineItemExtractor",
    "assign_category",
    "labor_rate_fields",
    "LLMService",
    "Enricher",
    "EnrichmentResponse",
    "LLMEnricher",
    "UnavailableEnricher",
    "create_enricher",
    "ImportOrchestrator",
    "build_import_summary",
]
