"""Result models for budget import.

ExtractionResult is the deterministic stage output; ImportResult is the
full pipeline output including the (optional) enrichment pass.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from budget_import.models.line_item import EnrichedLineItem, ExtractedLineItem
from budget_import.models.warnings import ImportWarning


class ComputedTotals(BaseModel):
    """Totals recomputed from extracted items, never read from the sheet."""

    total_cost: float = Field(default=0.0, alias="totalCost")
    total_price: float = Field(default=0.0, alias="totalPrice")

    class Config:
        populate_by_name = True
        frozen = True


class ExtractionMetadata(BaseModel):
    """Aggregate facts about one extraction run."""

    header_row_index: Optional[int] = Field(default=None, alias="headerRowIndex")
    stop_row_index: Optional[int] = Field(
        default=None,
        alias="stopRowIndex",
        description="Row where extraction halted; None when it ran to the end"
    )
    stop_reason: Optional[str] = Field(
        default=None,
        alias="stopReason",
        description="Warning code explaining the stop"
    )
    rows_scanned: int = Field(default=0, alias="rowsScanned", ge=0)
    rows_extracted: int = Field(
        default=0,
        alias="rowsExtracted",
        ge=0,
        description="Data rows that produced at least one item"
    )
    rows_skipped_empty: int = Field(default=0, alias="rowsSkippedEmpty", ge=0)
    rows_skipped_summary: int = Field(default=0, alias="rowsSkippedSummary", ge=0)
    items_extracted: int = Field(default=0, alias="itemsExtracted", ge=0)
    compound_rows_split: int = Field(default=0, alias="compoundRowsSplit", ge=0)
    mapping_confidence: float = Field(default=0.0, alias="mappingConfidence", ge=0.0, le=1.0)
    computed_totals: ComputedTotals = Field(default_factory=ComputedTotals, alias="computedTotals")

    class Config:
        populate_by_name = True
        frozen = True


class ExtractionResult(BaseModel):
    """Full deterministic-stage output."""

    success: bool = Field(description="False only when the header was not found")
    items: List[ExtractedLineItem] = Field(default_factory=list)
    warnings: List[ImportWarning] = Field(default_factory=list)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    class Config:
        populate_by_name = True
        frozen = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class ImportMetadata(ExtractionMetadata):
    """Extraction metadata plus enrichment outcome."""

    enrichment_used: bool = Field(default=False, alias="enrichmentUsed")


class ImportResult(BaseModel):
    """Full pipeline output (deterministic + optional enrichment)."""

    success: bool
    items: List[EnrichedLineItem] = Field(default_factory=list)
    warnings: List[ImportWarning] = Field(default_factory=list)
    metadata: ImportMetadata = Field(default_factory=ImportMetadata)

    class Config:
        populate_by_name = True
        frozen = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class ImportSummary(BaseModel):
    """Roll-up of an import for review screens."""

    total_line_items: int = Field(default=0, alias="totalLineItems")
    total_cost: float = Field(default=0.0, alias="totalCost")
    total_price: float = Field(default=0.0, alias="totalPrice")
    labor_items_count: int = Field(default=0, alias="laborItemsCount")
    subcontractor_items_count: int = Field(default=0, alias="subcontractorItemsCount")
    materials_items_count: int = Field(default=0, alias="materialsItemsCount")
    management_items_count: int = Field(default=0, alias="managementItemsCount")
    total_labor_hours: float = Field(default=0.0, alias="totalLaborHours")
    estimated_labor_cushion: float = Field(default=0.0, alias="estimatedLaborCushion")

    class Config:
        populate_by_name = True
        frozen = True
