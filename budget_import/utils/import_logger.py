"""Import Run Logger for the budget import pipeline.

Provides highly visible, formatted console output for import runs
(header detection, extraction counts, enrichment outcome) alongside the
structured log events.
"""

import json
import logging
import structlog
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from budget_import.config.settings import settings
from budget_import.models.column_mapping import ColumnMappingResult
from budget_import.models.import_result import ExtractionMetadata
from budget_import.models.warnings import ImportWarning

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
IMPORT_BANNER_CHAR = "█"
STAGE_BANNER_CHAR = "═"
WARNING_BANNER_CHAR = "░"


def configure_logging(level: Optional[str] = None, json_output: bool = False) -> None:
    """Configure structlog for import runs.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ...). Defaults
            to settings.log_level.
        json_output: Render JSON lines instead of console output.
    """
    level = level or settings.log_level
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        )
    )


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _format_json(data: Dict[str, Any], indent: int = 2) -> str:
    """Format dictionary as pretty JSON string."""
    try:
        return json.dumps(data, indent=indent, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(data)


def format_column_mapping(mapping: ColumnMappingResult) -> Dict[str, Any]:
    """Summarize a column mapping as role -> column index for display."""
    if mapping.columns is None:
        return {}
    return {
        role.value: col
        for role, col in mapping.columns.as_dict().items()
        if col is not None
    }


def log_import_start(row_count: int, col_count: int, enrich: bool) -> None:
    """Log import start with prominent banner."""
    timestamp = datetime.now(timezone.utc).isoformat()

    print("\n")
    print(IMPORT_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(IMPORT_BANNER_CHAR, "BUDGET IMPORT STARTED"))
    print(IMPORT_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Timestamp   : {timestamp}")
    print(f"║ Grid        : {row_count} rows x {col_count} columns")
    print(f"║ Enrichment  : {'requested' if enrich else 'off'}")
    print(IMPORT_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "import_start_logged",
        row_count=row_count,
        col_count=col_count,
        enrich=enrich
    )


def log_mapping_result(mapping: ColumnMappingResult) -> None:
    """Log detected header row and column roles."""
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(STAGE_BANNER_CHAR, "▶ COLUMN MAPPING"))
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    if not mapping.success:
        print("║ Header row  : NOT FOUND")
    else:
        print(f"║ Header row  : {mapping.header_row_index}")
        print(f"║ Confidence  : {mapping.confidence:.2f}")
        print("║ Columns     :")
        for line in _format_json(format_column_mapping(mapping)).split('\n'):
            print(f"  {line}")
        if mapping.unmapped_headers:
            print(f"║ Unmapped    : {', '.join(mapping.unmapped_headers)}")
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "mapping_result_logged",
        success=mapping.success,
        header_row_index=mapping.header_row_index,
        confidence=mapping.confidence
    )


def log_extraction_complete(
    metadata: ExtractionMetadata,
    warnings: List[ImportWarning]
) -> None:
    """Log extraction counts, totals and a warning breakdown."""
    counts: Dict[str, int] = {}
    for warning in warnings:
        counts[warning.code] = counts.get(warning.code, 0) + 1

    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(STAGE_BANNER_CHAR, "✓ EXTRACTION COMPLETE"))
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Rows extracted   : {metadata.rows_extracted}")
    print(f"║ Items extracted  : {metadata.items_extracted}")
    print(f"║ Rows split       : {metadata.compound_rows_split}")
    print(f"║ Skipped (empty)  : {metadata.rows_skipped_empty}")
    print(f"║ Skipped (summary): {metadata.rows_skipped_summary}")
    print(f"║ Stop             : {metadata.stop_reason or 'end of sheet'}")
    print(f"║ Total cost       : ${metadata.computed_totals.total_cost:,.2f}")
    print(f"║ Total price      : ${metadata.computed_totals.total_price:,.2f}")
    if counts:
        print(WARNING_BANNER_CHAR * BANNER_WIDTH)
        print("║ WARNINGS:")
        for code, count in sorted(counts.items()):
            print(f"║   {code:<28} {count}")
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "extraction_complete_logged",
        items_extracted=metadata.items_extracted,
        warning_counts=counts
    )


def log_enrichment_result(
    enricher_name: str,
    used: bool,
    item_count: int,
    error: Optional[str] = None
) -> None:
    """Log whether enrichment ran or fell back."""
    status = "APPLIED" if used else "FALLBACK"

    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(STAGE_BANNER_CHAR, f"ENRICHMENT: {status}"))
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Enricher    : {enricher_name}")
    print(f"║ Items       : {item_count}")
    if error:
        print(f"║ Reason      : {error}")
    print(STAGE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "enrichment_result_logged",
        enricher=enricher_name,
        used=used,
        item_count=item_count,
        error=error
    )
