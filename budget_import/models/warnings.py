"""Import warning models.

Warnings are the single channel for every non-fatal issue found while
mapping, extracting or enriching a sheet. Codes are stable identifiers;
callers filter on them rather than on message text.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class WarningCode(str, Enum):
    """Closed set of warning codes."""

    # Column mapping
    HEADER_NOT_FOUND = "HEADER_NOT_FOUND"
    COLUMN_MISSING = "COLUMN_MISSING"
    COLUMN_AMBIGUOUS = "COLUMN_AMBIGUOUS"
    LOW_CONFIDENCE_MAPPING = "LOW_CONFIDENCE_MAPPING"

    # Table region
    STOP_MARKER_FOUND = "STOP_MARKER_FOUND"
    STOP_BY_STRUCTURE = "STOP_BY_STRUCTURE"
    SKIPPED_SUMMARY_ROW = "SKIPPED_SUMMARY_ROW"
    SKIPPED_EMPTY_ROW = "SKIPPED_EMPTY_ROW"

    # Cell values
    MARKUP_MISSING = "MARKUP_MISSING"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"
    UNPARSEABLE_CURRENCY = "UNPARSEABLE_CURRENCY"
    UNPARSEABLE_PERCENT = "UNPARSEABLE_PERCENT"
    NEGATIVE_VALUE = "NEGATIVE_VALUE"

    # Enrichment
    ENRICHMENT_UNAVAILABLE = "ENRICHMENT_UNAVAILABLE"
    LOW_CONFIDENCE_CATEGORY = "LOW_CONFIDENCE_CATEGORY"


class ImportWarning(BaseModel):
    """A single anomaly surfaced to the reviewer."""

    code: WarningCode = Field(description="Stable warning code")
    message: str = Field(description="Human-readable explanation")
    row_index: Optional[int] = Field(
        default=None,
        alias="rowIndex",
        ge=0,
        description="0-based grid row the warning refers to"
    )
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Structured context (values, roles, columns)"
    )

    class Config:
        populate_by_name = True
        use_enum_values = True
        frozen = True
