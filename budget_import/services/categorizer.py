"""Deterministic category assignment and labor pricing.

Used whenever the enrichment capability did not run, so every imported item
carries a category without special-casing a missing enrichment pass.
"""

import re
from typing import Any, Dict, Optional

from budget_import.config.settings import settings
from budget_import.models.line_item import CostComponent, ExtractedLineItem, ItemCategory

MANAGEMENT_PATTERN = re.compile(r"\b(supervision|supervisor|management|project manager|pm)\b")

COMPONENT_CATEGORIES: Dict[str, ItemCategory] = {
    CostComponent.LABOR.value: ItemCategory.LABOR_INTERNAL,
    CostComponent.MATERIAL.value: ItemCategory.MATERIALS,
    CostComponent.SUB.value: ItemCategory.SUBCONTRACTORS,
}


def is_internal_vendor(vendor_name: Optional[str], internal_vendor_name: Optional[str] = None) -> bool:
    """Check if a vendor is the company itself (or not recorded)."""
    internal = internal_vendor_name if internal_vendor_name is not None else settings.internal_vendor_name
    if not vendor_name or not vendor_name.strip():
        return True
    return bool(internal) and vendor_name.strip().upper() == internal.upper()


def assign_category(
    item: ExtractedLineItem,
    internal_vendor_name: Optional[str] = None
) -> ItemCategory:
    """Assign a category from the item's component, vendor and name.

    In-house work carried at 0% markup is management overhead, as is
    anything named like supervision or project management. Everything else
    follows its cost component.
    """
    zero_markup = item.markup_pct is not None and abs(item.markup_pct) < 1e-9
    if zero_markup and is_internal_vendor(item.vendor_name, internal_vendor_name):
        return ItemCategory.MANAGEMENT
    if MANAGEMENT_PATTERN.search(item.name.lower()):
        return ItemCategory.MANAGEMENT
    return COMPONENT_CATEGORIES.get(item.component, ItemCategory.SUBCONTRACTORS)


def labor_rate_fields(
    item: ExtractedLineItem,
    category: ItemCategory,
    billing_rate: float,
    actual_rate: float
) -> Dict[str, Any]:
    """Compute hourly labor fields for internal labor items.

    Hours are derived from the cost at the billing rate; the cushion is the
    spread between billing and actual rates over those hours.

    Returns:
        Labor fields for EnrichedLineItem, or an empty dict when the item is
        not internal labor or its cost is negative.
    """
    if category != ItemCategory.LABOR_INTERNAL or item.component != CostComponent.LABOR.value:
        return {}
    if item.cost < 0 or billing_rate <= 0:
        return {}

    hours = round(item.cost / billing_rate, 4)
    return {
        "labor_hours": hours,
        "billing_rate_per_hour": billing_rate,
        "actual_cost_rate_per_hour": actual_rate,
        "labor_cushion_amount": round(hours * (billing_rate - actual_rate), 2),
    }
