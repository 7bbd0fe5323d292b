"""Line item models for budget import.

ExtractedLineItem is the deterministic output of the extractor.
EnrichedLineItem adds a semantic category, produced either by the optional
enrichment capability or by the deterministic fallback.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================


class CostComponent(str, Enum):
    """Cost component a line item represents."""

    LABOR = "labor"
    MATERIAL = "material"
    SUB = "sub"


class ItemCategory(str, Enum):
    """Closed set of semantic categories."""

    LABOR_INTERNAL = "labor_internal"
    MATERIALS = "materials"
    SUBCONTRACTORS = "subcontractors"
    MANAGEMENT = "management"


# =============================================================================
# EXTRACTED LINE ITEM
# =============================================================================


class RawCells(BaseModel):
    """Original trimmed cell text per role; blank cells are None."""

    subcontractor_cell: Optional[str] = Field(default=None, alias="subcontractorCell")
    labor_cell: Optional[str] = Field(default=None, alias="laborCell")
    material_cell: Optional[str] = Field(default=None, alias="materialCell")
    sub_cell: Optional[str] = Field(default=None, alias="subCell")
    total_cell: Optional[str] = Field(default=None, alias="totalCell")
    markup_cell: Optional[str] = Field(default=None, alias="markupCell")
    total_with_markup_cell: Optional[str] = Field(default=None, alias="totalWithMarkupCell")

    class Config:
        populate_by_name = True
        frozen = True


class ExtractedLineItem(BaseModel):
    """One deterministic cost record taken from a sheet row."""

    source_row_index: int = Field(
        alias="sourceRowIndex",
        ge=0,
        description="0-based grid row the item came from"
    )
    split_index: int = Field(
        default=0,
        alias="splitIndex",
        ge=0,
        description="Position among the items split from the same row"
    )
    source_item_name_raw: str = Field(
        alias="sourceItemNameRaw",
        description="Item cell text as written in the sheet"
    )
    name: str = Field(description="Normalized item name, suffixed when split")
    component: CostComponent = Field(description="Cost component")
    vendor_name: Optional[str] = Field(default=None, alias="vendorName")
    cost: float = Field(description="Cost before markup ($); negative for credits")
    markup_pct: Optional[float] = Field(
        default=None,
        alias="markupPct",
        description="Markup in percent units (25.0 means 25%)"
    )
    price: Optional[float] = Field(
        default=None,
        description="Computed cost with markup ($); None when markup is missing"
    )
    was_split: bool = Field(default=False, alias="wasSplit")
    split_from_name: Optional[str] = Field(default=None, alias="splitFromName")
    raw: RawCells = Field(default_factory=RawCells)

    class Config:
        populate_by_name = True
        use_enum_values = True
        frozen = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# ENRICHED LINE ITEM
# =============================================================================


class EnrichedLineItem(ExtractedLineItem):
    """Extracted line item plus semantic classification."""

    category: ItemCategory = Field(description="Semantic category")
    normalized_name: str = Field(alias="normalizedName")
    category_confidence: float = Field(
        default=0.0,
        alias="categoryConfidence",
        ge=0.0,
        le=1.0,
        description="Enrichment certainty; 0 for deterministic fallback"
    )

    # Internal labor pricing
    labor_hours: Optional[float] = Field(default=None, alias="laborHours", ge=0)
    billing_rate_per_hour: Optional[float] = Field(default=None, alias="billingRatePerHour")
    actual_cost_rate_per_hour: Optional[float] = Field(default=None, alias="actualCostRatePerHour")
    labor_cushion_amount: Optional[float] = Field(default=None, alias="laborCushionAmount")

    @classmethod
    def from_extracted(
        cls,
        item: ExtractedLineItem,
        category: ItemCategory,
        normalized_name: Optional[str] = None,
        category_confidence: float = 0.0,
        **labor_fields: Any
    ) -> "EnrichedLineItem":
        """Attach a category to an extracted item.

        Args:
            item: Deterministic line item.
            category: Assigned category.
            normalized_name: Cleaned display name (defaults to item.name).
            category_confidence: Certainty of the category (0-1).
            **labor_fields: Optional labor pricing fields.

        Returns:
            New EnrichedLineItem.
        """
        return cls(
            **item.model_dump(),
            category=category,
            normalized_name=normalized_name or item.name,
            category_confidence=category_confidence,
            **labor_fields
        )
