"""Pytest configuration and shared fixtures for budget import tests."""

import json
import os
import sys
import pytest
from unittest.mock import AsyncMock, patch


# ============================================================================
# Ensure local imports work (budget_import/, tests/fixtures/)
# ============================================================================
#
# Tests import `budget_import` and `tests.fixtures` as top-level modules, so
# the repository root must be on sys.path even without an editable install.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Grid Fixtures
# ============================================================================

@pytest.fixture
def kitchen_remodel_grid():
    """12-row remodel budget (Item | Labor | Material | Markup %)."""
    from tests.fixtures.mock_budget_sheets import get_kitchen_remodel_grid
    return get_kitchen_remodel_grid()


@pytest.fixture
def full_budget_grid():
    """Budget sheet using all eight column roles."""
    from tests.fixtures.mock_budget_sheets import get_full_budget_grid
    return get_full_budget_grid()


@pytest.fixture
def no_header_grid():
    """Sheet without any recognizable header row."""
    from tests.fixtures.mock_budget_sheets import get_no_header_grid
    return get_no_header_grid()


# ============================================================================
# Pipeline Component Fixtures
# ============================================================================

@pytest.fixture
def column_mapper():
    """ColumnMapper with explicit thresholds."""
    from budget_import.services.column_mapper import ColumnMapper
    return ColumnMapper(scan_rows=15, low_confidence_threshold=0.6)


@pytest.fixture
def line_item_extractor():
    """LineItemExtractor with explicit vendor and tolerance."""
    from budget_import.services.line_item_extractor import LineItemExtractor
    return LineItemExtractor(internal_vendor_name="RCG", total_tolerance=0.01)


@pytest.fixture
def kitchen_extraction(column_mapper, line_item_extractor, kitchen_remodel_grid):
    """ExtractionResult for the kitchen remodel grid."""
    mapping = column_mapper.map(kitchen_remodel_grid)
    return line_item_extractor.extract(kitchen_remodel_grid, mapping)


@pytest.fixture
def full_budget_extraction(column_mapper, line_item_extractor, full_budget_grid):
    """ExtractionResult for the full budget grid."""
    mapping = column_mapper.map(full_budget_grid)
    return line_item_extractor.extract(full_budget_grid, mapping)


# ============================================================================
# LLM Mocks
# ============================================================================

def make_ai_reply(content, total_tokens=100):
    """Build a chat model reply; dict content is serialized to JSON."""
    from langchain_core.messages import AIMessage

    if not isinstance(content, str):
        content = json.dumps(content)
    return AIMessage(
        content=content,
        usage_metadata={
            "input_tokens": total_tokens // 2,
            "output_tokens": total_tokens - total_tokens // 2,
            "total_tokens": total_tokens
        }
    )


@pytest.fixture
def ai_reply_factory():
    """Factory for chat model replies."""
    return make_ai_reply


@pytest.fixture
def mock_chat_openai():
    """Mock JSON-bound ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = make_ai_reply({"items": []}, total_tokens=100)
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """Mock LLMService."""
    from budget_import.services.llm_service import LLMService

    with patch('budget_import.services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key")
        service._client = mock_chat_openai
        return service


def make_enrichment_payload(items, category="materials", confidence=0.9):
    """Build a classify_items result labelling every item the same way."""
    return {
        "items": [
            {
                "category": category,
                "normalizedName": item.name.title(),
                "categoryConfidence": confidence
            }
            for item in items
        ],
        "tokens_used": 250
    }


@pytest.fixture
def enrichment_payload_factory():
    """Factory for LLM enrichment payloads."""
    return make_enrichment_payload
