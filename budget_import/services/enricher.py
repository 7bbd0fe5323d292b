"""Enrichment capability for extracted line items.

The enricher assigns each extracted item a semantic category, a cleaned
display name and a confidence. It is optional and non-deterministic, so it
sits behind a small interface:

- Enricher: abstract capability
- UnavailableEnricher: placeholder used when nothing is configured
- LLMEnricher: categorization through the LLM service

Request and response are parallel lists; any shape mismatch is a failure,
never a partial success.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from budget_import.config.errors import EnrichmentError, ErrorCode, LLMError
from budget_import.config.settings import settings
from budget_import.models.line_item import CostComponent, ExtractedLineItem, ItemCategory
from budget_import.services.llm_service import LLMService

logger = structlog.get_logger()


# =============================================================================
# CONTRACT
# =============================================================================


class EnrichmentRequestItem(BaseModel):
    """Summary of one extracted item sent to the enricher."""

    name: str
    component: CostComponent
    vendor_name: Optional[str] = Field(default=None, alias="vendorName")
    cost: float
    markup_pct: Optional[float] = Field(default=None, alias="markupPct")

    class Config:
        populate_by_name = True
        use_enum_values = True

    @classmethod
    def from_item(cls, item: ExtractedLineItem) -> "EnrichmentRequestItem":
        return cls(
            name=item.name,
            component=item.component,
            vendor_name=item.vendor_name,
            cost=item.cost,
            markup_pct=item.markup_pct
        )


class EnrichmentResponseItem(BaseModel):
    """Classification of one item returned by the enricher."""

    category: ItemCategory
    normalized_name: str = Field(alias="normalizedName", min_length=1)
    category_confidence: float = Field(alias="categoryConfidence", ge=0.0, le=1.0)

    class Config:
        populate_by_name = True


class EnrichmentResponse(BaseModel):
    """Ordered enrichment results, parallel to the request."""

    items: List[EnrichmentResponseItem] = Field(default_factory=list)
    tokens_used: int = Field(default=0, alias="tokensUsed", ge=0)

    class Config:
        populate_by_name = True


def parse_enrichment_response(
    raw_items: Any,
    expected_count: int,
    tokens_used: int = 0
) -> EnrichmentResponse:
    """Validate a raw enrichment payload against the request size.

    Args:
        raw_items: List of dicts returned by the capability.
        expected_count: Number of items sent.
        tokens_used: Tokens consumed producing the payload.

    Returns:
        Validated EnrichmentResponse.

    Raises:
        EnrichmentError: If the payload is not a list of the expected length
            or any entry is malformed.
    """
    if not isinstance(raw_items, list):
        raise EnrichmentError(
            "Enrichment response is not a list",
            code=ErrorCode.ENRICHMENT_SHAPE_MISMATCH,
            details={"received_type": type(raw_items).__name__}
        )
    if len(raw_items) != expected_count:
        raise EnrichmentError(
            f"Enrichment returned {len(raw_items)} items for {expected_count} requested",
            code=ErrorCode.ENRICHMENT_SHAPE_MISMATCH,
            details={"expected": expected_count, "received": len(raw_items)}
        )
    try:
        return EnrichmentResponse(items=raw_items, tokens_used=tokens_used)
    except ValidationError as e:
        raise EnrichmentError(
            "Enrichment response has malformed items",
            code=ErrorCode.ENRICHMENT_SHAPE_MISMATCH,
            details={"errors": e.errors(include_url=False)[:5]}
        ) from e


# =============================================================================
# CAPABILITIES
# =============================================================================


class Enricher(ABC):
    """Optional categorization capability."""

    name: str = "enricher"
    available: bool = True

    @abstractmethod
    async def enrich(self, items: List[ExtractedLineItem]) -> EnrichmentResponse:
        """Classify extracted items.

        Args:
            items: Extracted items, in order.

        Returns:
            EnrichmentResponse with one entry per item, same order.

        Raises:
            EnrichmentError: If the capability fails or answers malformed.
        """


class UnavailableEnricher(Enricher):
    """Stand-in used when no enrichment capability is configured."""

    name = "unavailable"
    available = False

    async def enrich(self, items: List[ExtractedLineItem]) -> EnrichmentResponse:
        raise EnrichmentError(
            "No enrichment capability is configured",
            code=ErrorCode.ENRICHMENT_UNAVAILABLE
        )


ENRICHMENT_SYSTEM_PROMPT = """You categorize line items from a construction budget sheet.

For each input item return an object with:
- "category": one of "labor_internal", "materials", "subcontractors", "management"
- "normalizedName": a short, clean, title-cased name for the item
- "categoryConfidence": a number between 0 and 1

Guidance:
- In-house labor (vendor is the company itself) is "labor_internal"
- Supervision, project management and overhead carried at 0% markup are "management"
- Work performed by an outside company is "subcontractors"
- Purchased goods are "materials"

Respond with a JSON object {"items": [...]} containing exactly one object per input item, in the same order."""


class LLMEnricher(Enricher):
    """Enricher backed by the LLM service."""

    name = "llm"

    def __init__(self, llm_service: Optional[LLMService] = None):
        """Initialize LLMEnricher.

        Args:
            llm_service: Optional LLMService instance.
        """
        self.llm = llm_service or LLMService()

    async def enrich(self, items: List[ExtractedLineItem]) -> EnrichmentResponse:
        if not items:
            return EnrichmentResponse()

        request = [
            EnrichmentRequestItem.from_item(item).model_dump(by_alias=True, mode="json")
            for item in items
        ]
        try:
            result = await self.llm.classify_items(ENRICHMENT_SYSTEM_PROMPT, request)
        except LLMError as e:
            raise EnrichmentError(
                f"LLM enrichment failed: {e.message}",
                details={"llm_code": e.code, **e.details}
            ) from e

        response = parse_enrichment_response(
            result["items"],
            expected_count=len(items),
            tokens_used=result.get("tokens_used", 0)
        )
        logger.info(
            "llm_enrichment_completed",
            item_count=len(items),
            tokens_used=response.tokens_used
        )
        return response


def create_enricher(llm_service: Optional[LLMService] = None) -> Enricher:
    """Build the enricher for the current configuration.

    Returns:
        LLMEnricher when an LLM service is given or an API key is configured,
        otherwise UnavailableEnricher.
    """
    if llm_service is not None or settings.llm_configured:
        return LLMEnricher(llm_service)
    return UnavailableEnricher()
