"""Utility modules for budget import."""

from budget_import.utils.import_logger import (
    configure_logging,
    format_column_mapping,
    log_import_start,
    log_mapping_result,
    log_extraction_complete,
    log_enrichment_result,
)

__all__ = [
    "configure_logging",
    "format_column_mapping",
    "log_import_start",
    "log_mapping_result",
    "log_extraction_complete",
    "log_enrichment_result",
]
