"""Unit tests for ImportOrchestrator."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from budget_import.config.errors import ErrorCode
from budget_import.models.line_item import ItemCategory
from budget_import.models.warnings import WarningCode
from budget_import.services.enricher import (
    Enricher,
    EnrichmentResponse,
    parse_enrichment_response,
)
from budget_import.services.import_orchestrator import ImportOrchestrator, build_import_summary


COMPONENT_CATEGORIES = {
    "labor": "labor_internal",
    "material": "materials",
    "sub": "subcontractors",
}


# ============================================================================
# Fixtures
# ============================================================================


class ComponentEnricher(Enricher):
    """Enricher that categorizes by component with a fixed confidence."""

    name = "component"

    def __init__(self, confidence=0.95):
        self.confidence = confidence
        self.calls = 0

    async def enrich(self, items):
        self.calls += 1
        return parse_enrichment_response(
            [
                {
                    "category": COMPONENT_CATEGORIES[item.component],
                    "normalizedName": item.name.upper(),
                    "categoryConfidence": self.confidence
                }
                for item in items
            ],
            expected_count=len(items),
            tokens_used=120
        )


class SlowEnricher(Enricher):
    """Enricher that never answers in time."""

    name = "slow"

    async def enrich(self, items):
        await asyncio.sleep(5)
        return EnrichmentResponse()


class BrokenEnricher(Enricher):
    """Enricher that fails with an unexpected exception."""

    name = "broken"

    async def enrich(self, items):
        raise RuntimeError("socket closed")


class ShortEnricher(Enricher):
    """Enricher that answers for fewer items than requested."""

    name = "short"

    async def enrich(self, items):
        return parse_enrichment_response([], expected_count=len(items))


class TruncatingEnricher(Enricher):
    """Enricher that builds its response directly and drops all but the first item."""

    name = "truncating"

    async def enrich(self, items):
        return EnrichmentResponse(items=[{
            "category": "materials",
            "normalizedName": items[0].name,
            "categoryConfidence": 0.9
        }])


class PaddingEnricher(ComponentEnricher):
    """Enricher that answers with one entry more than requested."""

    name = "padding"

    async def enrich(self, items):
        response = await super().enrich(items)
        return EnrichmentResponse(items=response.items + response.items[:1])


class DisabledEnricher(ComponentEnricher):
    """Enricher that reports itself unavailable."""

    name = "disabled"
    available = False


def warnings_with(result, code):
    return [warning for warning in result.warnings if warning.code == code]


@pytest.fixture
def orchestrator(column_mapper, line_item_extractor):
    """Orchestrator without an enricher."""
    return ImportOrchestrator(
        mapper=column_mapper,
        extractor=line_item_extractor,
        labor_billing_rate=75,
        labor_actual_rate=35
    )


def with_enricher(enricher, column_mapper, line_item_extractor, **kwargs):
    return ImportOrchestrator(
        enricher=enricher,
        mapper=column_mapper,
        extractor=line_item_extractor,
        labor_billing_rate=75,
        labor_actual_rate=35,
        **kwargs
    )


# ============================================================================
# Deterministic Runs
# ============================================================================


class TestDeterministicRun:
    """Tests for runs without enrichment."""

    @pytest.mark.asyncio
    async def test_run_without_enrichment(self, orchestrator, kitchen_remodel_grid):
        """Test items get rule-based categories with zero confidence."""
        result = await orchestrator.run(kitchen_remodel_grid)

        assert result.success
        assert len(result.items) == 9
        assert not result.metadata.enrichment_used
        assert all(item.category_confidence == 0.0 for item in result.items)
        assert not warnings_with(result, WarningCode.ENRICHMENT_UNAVAILABLE)

    @pytest.mark.asyncio
    async def test_fallback_categories(self, orchestrator, kitchen_remodel_grid):
        """Test categories follow components and names default to item names."""
        result = await orchestrator.run(kitchen_remodel_grid)

        permits = next(item for item in result.items if item.name == "Permits")
        framing = next(item for item in result.items if item.name == "Framing")

        assert permits.category == ItemCategory.MATERIALS
        assert framing.category == ItemCategory.LABOR_INTERNAL
        assert framing.normalized_name == "Framing"

    @pytest.mark.asyncio
    async def test_labor_fields(self, orchestrator, kitchen_remodel_grid):
        """Test internal labor items get hours and cushion."""
        result = await orchestrator.run(kitchen_remodel_grid)

        framing = next(item for item in result.items if item.name == "Framing")
        permits = next(item for item in result.items if item.name == "Permits")

        assert framing.labor_hours == 16.0
        assert framing.billing_rate_per_hour == 75
        assert framing.actual_cost_rate_per_hour == 35
        assert framing.labor_cushion_amount == 640.0
        assert permits.labor_hours is None

    @pytest.mark.asyncio
    async def test_labor_rate_override(self, column_mapper, line_item_extractor, kitchen_remodel_grid):
        """Test per-run labor rates replace the configured ones."""
        orchestrator = ImportOrchestrator(
            mapper=column_mapper,
            extractor=line_item_extractor,
            labor_billing_rate=100,
            labor_actual_rate=50
        )

        result = await orchestrator.run(kitchen_remodel_grid)

        framing = next(item for item in result.items if item.name == "Framing")
        assert framing.labor_hours == 12.0
        assert framing.labor_cushion_amount == 600.0

    @pytest.mark.asyncio
    async def test_header_not_found(self, column_mapper, line_item_extractor, no_header_grid):
        """Test a missing header ends the run before enrichment."""
        enricher = ComponentEnricher()
        orchestrator = with_enricher(enricher, column_mapper, line_item_extractor)

        result = await orchestrator.run(no_header_grid, enrich=True)

        assert not result.success
        assert result.items == []
        assert [w.code for w in result.warnings] == [WarningCode.HEADER_NOT_FOUND.value]
        assert enricher.calls == 0

    @pytest.mark.asyncio
    async def test_items_match_extraction(self, orchestrator, full_budget_grid):
        """Test run keeps every extracted item and its deterministic fields."""
        extraction = orchestrator.extract(full_budget_grid)
        result = await orchestrator.run(full_budget_grid)

        assert len(result.items) == len(extraction.items)
        for enriched, extracted in zip(result.items, extraction.items):
            assert enriched.source_row_index == extracted.source_row_index
            assert enriched.cost == extracted.cost
            assert enriched.price == extracted.price
        assert result.metadata.rows_extracted == extraction.metadata.rows_extracted

    @pytest.mark.asyncio
    async def test_to_dict(self, orchestrator, kitchen_remodel_grid):
        """Test the result serializes with camelCase keys."""
        data = (await orchestrator.run(kitchen_remodel_grid)).to_dict()

        assert data["metadata"]["enrichmentUsed"] is False
        assert data["items"][0]["category"] == "materials"
        assert data["items"][0]["categoryConfidence"] == 0.0


# ============================================================================
# Enrichment
# ============================================================================


class TestEnrichment:
    """Tests for the optional enrichment pass."""

    @pytest.mark.asyncio
    async def test_enrichment_applied(self, column_mapper, line_item_extractor, kitchen_remodel_grid):
        """Test enricher categories, names and confidences are used."""
        orchestrator = with_enricher(ComponentEnricher(), column_mapper, line_item_extractor)

        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        assert result.metadata.enrichment_used
        assert len(result.items) == 9
        assert all(item.category_confidence == 0.95 for item in result.items)
        framing = next(item for item in result.items if item.name == "Framing")
        assert framing.normalized_name == "FRAMING"
        assert framing.labor_hours == 16.0

    @pytest.mark.asyncio
    async def test_enrichment_not_requested(self, column_mapper, line_item_extractor, kitchen_remodel_grid):
        """Test an available enricher is not called unless requested."""
        enricher = ComponentEnricher()
        orchestrator = with_enricher(enricher, column_mapper, line_item_extractor)

        result = await orchestrator.run(kitchen_remodel_grid)

        assert enricher.calls == 0
        assert not result.metadata.enrichment_used

    @pytest.mark.asyncio
    async def test_low_confidence_category(self, column_mapper, line_item_extractor, kitchen_remodel_grid):
        """Test uncertain categories are flagged per item."""
        orchestrator = with_enricher(ComponentEnricher(confidence=0.3), column_mapper, line_item_extractor)

        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        low = warnings_with(result, WarningCode.LOW_CONFIDENCE_CATEGORY)
        assert len(low) == 9
        assert low[0].details["confidence"] == 0.3

    @pytest.mark.asyncio
    async def test_unavailable_enricher(self, orchestrator, kitchen_remodel_grid):
        """Test requesting enrichment without a capability falls back."""
        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        unavailable = warnings_with(result, WarningCode.ENRICHMENT_UNAVAILABLE)
        assert len(unavailable) == 1
        assert unavailable[0].details["error_code"] == ErrorCode.ENRICHMENT_UNAVAILABLE
        assert not result.metadata.enrichment_used
        assert len(result.items) == 9
        assert all(item.category_confidence == 0.0 for item in result.items)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("enricher,error_code", [
        (BrokenEnricher(), ErrorCode.ENRICHMENT_FAILED),
        (ShortEnricher(), ErrorCode.ENRICHMENT_SHAPE_MISMATCH),
        (TruncatingEnricher(), ErrorCode.ENRICHMENT_SHAPE_MISMATCH),
        (PaddingEnricher(), ErrorCode.ENRICHMENT_SHAPE_MISMATCH),
    ])
    async def test_failed_enrichment_falls_back(
        self, column_mapper, line_item_extractor, kitchen_remodel_grid, enricher, error_code
    ):
        """Test enricher failures degrade to rule-based categories."""
        orchestrator = with_enricher(enricher, column_mapper, line_item_extractor)

        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        assert result.success
        assert not result.metadata.enrichment_used
        assert len(result.items) == 9
        assert all(item.category_confidence == 0.0 for item in result.items)
        unavailable = warnings_with(result, WarningCode.ENRICHMENT_UNAVAILABLE)
        assert unavailable[0].details["error_code"] == error_code

    @pytest.mark.asyncio
    async def test_mismatched_response_keeps_every_item(
        self, column_mapper, line_item_extractor, kitchen_remodel_grid
    ):
        """Test a response missing items never drops items or changes totals."""
        orchestrator = with_enricher(TruncatingEnricher(), column_mapper, line_item_extractor)
        extraction = orchestrator.extract(kitchen_remodel_grid)

        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        assert not result.metadata.enrichment_used
        assert [item.name for item in result.items] == [item.name for item in extraction.items]
        assert sum(item.cost for item in result.items) == pytest.approx(
            result.metadata.computed_totals.total_cost
        )
        mismatch = warnings_with(result, WarningCode.ENRICHMENT_UNAVAILABLE)[0]
        assert mismatch.details["error_code"] == ErrorCode.ENRICHMENT_SHAPE_MISMATCH

    @pytest.mark.asyncio
    async def test_unavailable_enricher_not_called(
        self, column_mapper, line_item_extractor, kitchen_remodel_grid
    ):
        """Test an enricher reporting itself unavailable is skipped."""
        enricher = DisabledEnricher()
        orchestrator = with_enricher(enricher, column_mapper, line_item_extractor)

        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        assert enricher.calls == 0
        assert not result.metadata.enrichment_used
        unavailable = warnings_with(result, WarningCode.ENRICHMENT_UNAVAILABLE)
        assert unavailable[0].details["error_code"] == ErrorCode.ENRICHMENT_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, column_mapper, line_item_extractor, kitchen_remodel_grid):
        """Test a slow enricher is cancelled and the run still completes."""
        orchestrator = with_enricher(
            SlowEnricher(), column_mapper, line_item_extractor, enrichment_timeout=0.01
        )

        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        unavailable = warnings_with(result, WarningCode.ENRICHMENT_UNAVAILABLE)
        assert unavailable[0].details["error_code"] == ErrorCode.ENRICHMENT_TIMEOUT
        assert len(result.items) == 9

    @pytest.mark.asyncio
    async def test_enrichment_warnings_follow_extraction(self, orchestrator, kitchen_remodel_grid):
        """Test enrichment warnings are appended after extraction warnings."""
        extraction = orchestrator.extract(kitchen_remodel_grid)
        result = await orchestrator.run(kitchen_remodel_grid, enrich=True)

        assert result.warnings[:len(extraction.warnings)] == extraction.warnings
        assert result.warnings[-1].code == WarningCode.ENRICHMENT_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_no_items_skips_enricher(self, column_mapper, line_item_extractor):
        """Test an empty extraction never calls the enricher."""
        from tests.fixtures.mock_budget_sheets import build_grid

        enricher = ComponentEnricher()
        enricher.enrich = AsyncMock()
        orchestrator = with_enricher(enricher, column_mapper, line_item_extractor)

        result = await orchestrator.run(
            build_grid(["Item", "Labor", "Material"], []), enrich=True
        )

        assert result.success
        assert result.items == []
        enricher.enrich.assert_not_called()


# ============================================================================
# Summary
# ============================================================================


class TestImportSummary:
    """Tests for build_import_summary."""

    @pytest.mark.asyncio
    async def test_full_budget_summary(self, orchestrator, full_budget_grid):
        """Test counts and totals roll up by category."""
        result = await orchestrator.run(full_budget_grid)

        summary = build_import_summary(result)

        assert summary.total_line_items == 7
        assert summary.total_cost == pytest.approx(15200.0)
        assert summary.total_price == pytest.approx(17540.0)
        assert summary.labor_items_count == 1
        assert summary.subcontractor_items_count == 2
        assert summary.materials_items_count == 3
        assert summary.management_items_count == 1
        assert summary.total_labor_hours == pytest.approx(20.0)
        assert summary.estimated_labor_cushion == pytest.approx(800.0)

    @pytest.mark.asyncio
    async def test_empty_summary(self, orchestrator, no_header_grid):
        """Test a failed import summarizes to zeros."""
        result = await orchestrator.run(no_header_grid)

        summary = build_import_summary(result)

        assert summary.total_line_items == 0
        assert summary.total_cost == 0.0
