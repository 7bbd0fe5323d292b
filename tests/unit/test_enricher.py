"""Unit tests for the enrichment capability."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from budget_import.config.errors import EnrichmentError, ErrorCode, LLMError
from budget_import.models.line_item import ItemCategory
from budget_import.services.enricher import (
    EnrichmentRequestItem,
    LLMEnricher,
    UnavailableEnricher,
    create_enricher,
    parse_enrichment_response,
)


def valid_entry(category="materials", name="Drywall", confidence=0.9):
    return {"category": category, "normalizedName": name, "categoryConfidence": confidence}


# ============================================================================
# Contract
# ============================================================================


class TestEnrichmentContract:
    """Tests for request and response shapes."""

    def test_request_from_item(self, kitchen_extraction):
        """Test request items carry the fields the enricher needs."""
        item = kitchen_extraction.items[0]

        request = EnrichmentRequestItem.from_item(item).model_dump(by_alias=True)

        assert request == {
            "name": "Permits",
            "component": "material",
            "vendorName": "RCG",
            "cost": 250.0,
            "markupPct": 10.0,
        }

    def test_parse_valid_response(self):
        """Test a well-formed payload parses in order."""
        response = parse_enrichment_response(
            [valid_entry(), valid_entry("labor_internal", "Framing", 0.7)],
            expected_count=2,
            tokens_used=42
        )

        assert [i.category for i in response.items] == [
            ItemCategory.MATERIALS, ItemCategory.LABOR_INTERNAL
        ]
        assert response.items[1].normalized_name == "Framing"
        assert response.tokens_used == 42

    def test_length_mismatch(self):
        """Test a short payload is a shape mismatch, not a partial result."""
        with pytest.raises(EnrichmentError) as exc_info:
            parse_enrichment_response([valid_entry()], expected_count=2)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_SHAPE_MISMATCH
        assert exc_info.value.details == {"expected": 2, "received": 1}

    def test_not_a_list(self):
        """Test a non-list payload is rejected."""
        with pytest.raises(EnrichmentError) as exc_info:
            parse_enrichment_response({"items": []}, expected_count=0)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_SHAPE_MISMATCH

    @pytest.mark.parametrize("entry", [
        valid_entry(category="overhead"),
        valid_entry(confidence=1.5),
        valid_entry(name=""),
        {"category": "materials"},
    ])
    def test_malformed_entry(self, entry):
        """Test unknown categories and out-of-range values are rejected."""
        with pytest.raises(EnrichmentError) as exc_info:
            parse_enrichment_response([entry], expected_count=1)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_SHAPE_MISMATCH


# ============================================================================
# Capabilities
# ============================================================================


class TestUnavailableEnricher:
    """Tests for UnavailableEnricher."""

    @pytest.mark.asyncio
    async def test_always_fails(self, kitchen_extraction):
        """Test the placeholder raises ENRICHMENT_UNAVAILABLE."""
        enricher = UnavailableEnricher()

        assert not enricher.available
        with pytest.raises(EnrichmentError) as exc_info:
            await enricher.enrich(kitchen_extraction.items)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_UNAVAILABLE


class TestLLMEnricher:
    """Tests for LLMEnricher."""

    @pytest.fixture
    def llm(self):
        """Mock LLMService."""
        mock = MagicMock()
        mock.classify_items = AsyncMock()
        return mock

    @pytest.mark.asyncio
    async def test_enrich(self, llm, kitchen_extraction, enrichment_payload_factory):
        """Test a valid LLM payload becomes an EnrichmentResponse."""
        items = kitchen_extraction.items
        llm.classify_items.return_value = enrichment_payload_factory(items)

        response = await LLMEnricher(llm).enrich(items)

        assert len(response.items) == len(items)
        assert response.tokens_used == 250
        assert response.items[0].normalized_name == "Permits"

    @pytest.mark.asyncio
    async def test_sends_items_in_order(self, llm, kitchen_extraction, enrichment_payload_factory):
        """Test the user message lists every item in order."""
        items = kitchen_extraction.items
        llm.classify_items.return_value = enrichment_payload_factory(items)

        await LLMEnricher(llm).enrich(items)

        _, sent = llm.classify_items.call_args[0]
        assert [entry["name"] for entry in sent] == [item.name for item in items]

    @pytest.mark.asyncio
    async def test_reply_without_items(self, llm, kitchen_extraction):
        """Test a reply with no items list is a shape mismatch."""
        llm.classify_items.return_value = {"items": None, "tokens_used": 10}

        with pytest.raises(EnrichmentError) as exc_info:
            await LLMEnricher(llm).enrich(kitchen_extraction.items)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_SHAPE_MISMATCH

    @pytest.mark.asyncio
    async def test_empty_items_skip_llm(self, llm):
        """Test nothing is sent for an empty item list."""
        response = await LLMEnricher(llm).enrich([])

        assert response.items == []
        llm.classify_items.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_error_wrapped(self, llm, kitchen_extraction):
        """Test LLM failures surface as EnrichmentError."""
        llm.classify_items.side_effect = LLMError(
            code=ErrorCode.LLM_RATE_LIMIT,
            message="OpenAI rate limit exceeded",
            model="gpt-4o"
        )

        with pytest.raises(EnrichmentError) as exc_info:
            await LLMEnricher(llm).enrich(kitchen_extraction.items)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_FAILED
        assert exc_info.value.details["llm_code"] == ErrorCode.LLM_RATE_LIMIT

    @pytest.mark.asyncio
    async def test_wrong_count(self, llm, kitchen_extraction):
        """Test a payload of the wrong length is rejected."""
        llm.classify_items.return_value = {"items": [valid_entry()], "tokens_used": 5}

        with pytest.raises(EnrichmentError) as exc_info:
            await LLMEnricher(llm).enrich(kitchen_extraction.items)

        assert exc_info.value.code == ErrorCode.ENRICHMENT_SHAPE_MISMATCH


class TestCreateEnricher:
    """Tests for create_enricher."""

    def test_with_llm_service(self):
        """Test an explicit LLM service gives an LLMEnricher."""
        llm = MagicMock()

        enricher = create_enricher(llm)

        assert isinstance(enricher, LLMEnricher)
        assert enricher.llm is llm

    def test_without_api_key(self, monkeypatch):
        """Test no API key gives the unavailable placeholder."""
        from budget_import.config.settings import settings

        monkeypatch.setattr(settings, "openai_api_key", None)

        assert isinstance(create_enricher(), UnavailableEnricher)
