"""Budget import configuration.

This package contains:
- settings: Environment variables and heuristic thresholds
- errors: Custom exceptions and error codes
"""

from budget_import.config.settings import settings, Settings
from budget_import.config.errors import (
    BudgetImportError,
    EnrichmentError,
    LLMError,
    ErrorCode,
)

__all__ = [
    "settings",
    "Settings",
    "BudgetImportError",
    "EnrichmentError",
    "LLMError",
    "ErrorCode",
]
