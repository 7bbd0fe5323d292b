"""Import Orchestrator for budget sheets.

Sequences the pipeline stages for one grid:

    Mapping -> Extracting -> (Enriching) -> Done

A missing header ends the run at Mapping with success=False. The
deterministic ExtractionResult is complete before enrichment starts, and
any enrichment failure falls back to rule-based categories.
"""

import asyncio
import time
from typing import List, Optional

import structlog

from budget_import.config.errors import BudgetImportError, EnrichmentError, ErrorCode
from budget_import.config.settings import settings
from budget_import.models.grid import Grid
from budget_import.models.import_result import (
    ExtractionResult,
    ImportMetadata,
    ImportResult,
    ImportSummary,
)
from budget_import.models.line_item import EnrichedLineItem, ExtractedLineItem, ItemCategory
from budget_import.models.warnings import WarningCode
from budget_import.services.categorizer import assign_category, labor_rate_fields
from budget_import.services.cell_parser import round2
from budget_import.services.column_mapper import ColumnMapper
from budget_import.services.enricher import Enricher, EnrichmentResponse, UnavailableEnricher
from budget_import.services.line_item_extractor import LineItemExtractor
from budget_import.services.warning_collector import WarningCollector
from budget_import.utils.import_logger import (
    log_import_start,
    log_mapping_result,
    log_extraction_complete,
    log_enrichment_result,
)

logger = structlog.get_logger()


class ImportOrchestrator:
    """Runs column mapping, extraction and optional enrichment.

    Flow:
    1. Map columns; stop with success=False if no header was found
    2. Extract line items (deterministic, synchronous)
    3. If requested, enrich under a timeout
    4. On any enrichment failure, categorize by rule with confidence 0
    5. Attach labor hours and cushion to internal labor items
    """

    def __init__(
        self,
        enricher: Optional[Enricher] = None,
        mapper: Optional[ColumnMapper] = None,
        extractor: Optional[LineItemExtractor] = None,
        labor_billing_rate: Optional[float] = None,
        labor_actual_rate: Optional[float] = None,
        enrichment_timeout: Optional[float] = None,
        verbose: bool = False
    ):
        """Initialize ImportOrchestrator.

        Args:
            enricher: Optional enrichment capability.
            mapper: Optional ColumnMapper instance.
            extractor: Optional LineItemExtractor instance.
            labor_billing_rate: Hourly billing rate (default from settings).
            labor_actual_rate: Hourly actual labor cost (default from settings).
            enrichment_timeout: Seconds allowed for enrichment (default from settings).
            verbose: Print stage banners to the console.
        """
        self.enricher = enricher or UnavailableEnricher()
        self.mapper = mapper or ColumnMapper()
        self.extractor = extractor or LineItemExtractor()
        self.labor_billing_rate = (
            labor_billing_rate if labor_billing_rate is not None else settings.labor_billing_rate
        )
        self.labor_actual_rate = (
            labor_actual_rate if labor_actual_rate is not None else settings.labor_actual_rate
        )
        self.enrichment_timeout = (
            enrichment_timeout
            if enrichment_timeout is not None
            else settings.enrichment_timeout_seconds
        )
        self.verbose = verbose

    def extract(self, grid: Grid) -> ExtractionResult:
        """Run the deterministic stages only.

        Args:
            grid: Decoded budget sheet.

        Returns:
            ExtractionResult (frozen).
        """
        mapping = self.mapper.map(grid)
        if self.verbose:
            log_mapping_result(mapping)

        result = self.extractor.extract(grid, mapping)
        if self.verbose and result.success:
            log_extraction_complete(result.metadata, result.warnings)
        return result

    async def run(self, grid: Grid, enrich: bool = False) -> ImportResult:
        """Run the full import pipeline.

        Never raises for data or enrichment problems; every anomaly is
        returned as a warning.

        Args:
            grid: Decoded budget sheet.
            enrich: Request the enrichment pass.

        Returns:
            ImportResult with enriched (or fallback-categorized) items.
        """
        start_time = time.time()
        if self.verbose:
            log_import_start(grid.row_count, grid.col_count, enrich)

        extraction = self.extract(grid)
        metadata = extraction.metadata.model_dump()

        if not extraction.success:
            logger.warning("import_failed", reason=extraction.metadata.stop_reason)
            return ImportResult(
                success=False,
                warnings=extraction.warnings,
                metadata=ImportMetadata(**metadata, enrichment_used=False)
            )

        collector = WarningCollector(stage="enrichment")
        collector.extend(extraction.warnings)

        response: Optional[EnrichmentResponse] = None
        if enrich and extraction.items:
            response = await self._enrich(extraction.items, collector)

        if response is not None:
            items = self._apply_enrichment(extraction.items, response, collector)
        else:
            items = [self._fallback(item) for item in extraction.items]

        enrichment_used = response is not None
        logger.info(
            "import_completed",
            items=len(items),
            warnings=len(collector),
            enrichment_used=enrichment_used,
            duration_ms=int((time.time() - start_time) * 1000)
        )

        return ImportResult(
            success=True,
            items=items,
            warnings=collector.warnings,
            metadata=ImportMetadata(**metadata, enrichment_used=enrichment_used)
        )

    # =========================================================================
    # Enrichment
    # =========================================================================

    async def _enrich(
        self,
        items: List[ExtractedLineItem],
        collector: WarningCollector
    ) -> Optional[EnrichmentResponse]:
        """Call the enricher; on any failure record a warning and return None."""
        enricher_name = self.enricher.name
        try:
            response = await self._call_enricher(items)
        except asyncio.TimeoutError:
            error = BudgetImportError(
                code=ErrorCode.ENRICHMENT_TIMEOUT,
                message=f"Enrichment did not finish within {self.enrichment_timeout}s"
            )
        except BudgetImportError as e:
            error = e
        except Exception as e:
            error = BudgetImportError(
                code=ErrorCode.ENRICHMENT_FAILED,
                message=f"Enrichment failed: {e}",
                details={"exception": type(e).__name__}
            )
        else:
            if self.verbose:
                log_enrichment_result(enricher_name, True, len(items))
            return response

        logger.warning(
            "enrichment_fallback",
            enricher=enricher_name,
            code=error.code,
            message=error.message
        )
        collector.add(
            WarningCode.ENRICHMENT_UNAVAILABLE,
            f"Enrichment unavailable ({error.message}); using rule-based categories",
            enricher=enricher_name,
            error_code=error.code
        )
        if self.verbose:
            log_enrichment_result(enricher_name, False, len(items), error=error.message)
        return None

    async def _call_enricher(self, items: List[ExtractedLineItem]) -> EnrichmentResponse:
        """Invoke the enricher under the timeout and check the answer lines up with items.

        Raises:
            EnrichmentError: If the enricher is unavailable or answers for a
                different number of items.
            asyncio.TimeoutError: If the enricher exceeds the timeout.
        """
        if not self.enricher.available:
            raise EnrichmentError(
                f"Enricher \"{self.enricher.name}\" is not available",
                code=ErrorCode.ENRICHMENT_UNAVAILABLE
            )

        response = await asyncio.wait_for(
            self.enricher.enrich(items),
            timeout=self.enrichment_timeout
        )
        if len(response.items) != len(items):
            raise EnrichmentError(
                f"Enrichment returned {len(response.items)} items for {len(items)} requested",
                code=ErrorCode.ENRICHMENT_SHAPE_MISMATCH,
                details={"expected": len(items), "received": len(response.items)}
            )
        return response

    def _apply_enrichment(
        self,
        items: List[ExtractedLineItem],
        response: EnrichmentResponse,
        collector: WarningCollector
    ) -> List[EnrichedLineItem]:
        enriched = []
        for item, result in zip(items, response.items):
            category = ItemCategory(result.category)
            if result.category_confidence < settings.low_category_confidence:
                collector.add(
                    WarningCode.LOW_CONFIDENCE_CATEGORY,
                    f'Low confidence ({result.category_confidence:.2f}) categorizing '
                    f'"{item.name}" as {category.value}',
                    row_index=item.source_row_index,
                    category=category.value,
                    confidence=result.category_confidence
                )
            enriched.append(EnrichedLineItem.from_extracted(
                item,
                category=category,
                normalized_name=result.normalized_name,
                category_confidence=result.category_confidence,
                **labor_rate_fields(
                    item, category, self.labor_billing_rate, self.labor_actual_rate
                )
            ))
        return enriched

    def _fallback(self, item: ExtractedLineItem) -> EnrichedLineItem:
        category = assign_category(item, self.extractor.internal_vendor_name)
        return EnrichedLineItem.from_extracted(
            item,
            category=category,
            category_confidence=0.0,
            **labor_rate_fields(item, category, self.labor_billing_rate, self.labor_actual_rate)
        )


def build_import_summary(result: ImportResult) -> ImportSummary:
    """Roll an import result up into counts and totals.

    Args:
        result: Output of ImportOrchestrator.run.

    Returns:
        ImportSummary.
    """
    counts = {category.value: 0 for category in ItemCategory}
    for item in result.items:
        counts[item.category] += 1

    return ImportSummary(
        total_line_items=len(result.items),
        total_cost=round2(sum(item.cost for item in result.items)),
        total_price=round2(sum(item.price or 0.0 for item in result.items)),
        labor_items_count=counts[ItemCategory.LABOR_INTERNAL.value],
        subcontractor_items_count=counts[ItemCategory.SUBCONTRACTORS.value],
        materials_items_count=counts[ItemCategory.MATERIALS.value],
        management_items_count=counts[ItemCategory.MANAGEMENT.value],
        total_labor_hours=round(sum(item.labor_hours or 0.0 for item in result.items), 2),
        estimated_labor_cushion=round2(
            sum(item.labor_cushion_amount or 0.0 for item in result.items)
        )
    )
