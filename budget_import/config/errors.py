"""Budget import error handling.

Custom exceptions and error codes for the import pipeline.

Data problems in a sheet are never raised: they become ImportWarning
entries. These exceptions only cross the enrichment boundary, where the
orchestrator catches them and degrades to deterministic defaults.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Enrichment Errors
    ENRICHMENT_UNAVAILABLE = "ENRICHMENT_UNAVAILABLE"
    ENRICHMENT_TIMEOUT = "ENRICHMENT_TIMEOUT"
    ENRICHMENT_SHAPE_MISMATCH = "ENRICHMENT_SHAPE_MISMATCH"
    ENRICHMENT_FAILED = "ENRICHMENT_FAILED"

    # LLM Errors
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"
    LLM_INVALID_JSON = "LLM_INVALID_JSON"


class BudgetImportError(Exception):
    """Base exception for budget import errors.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"BudgetImportError(code={self.code!r}, message={self.message!r})"


class EnrichmentError(BudgetImportError):
    """Enrichment capability failed or returned an unusable response."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.ENRICHMENT_FAILED,
        details: Optional[Dict] = None
    ):
        super().__init__(code=code, message=message, details=details)


class LLMError(BudgetImportError):
    """LLM client error."""

    def __init__(
        self,
        code: str,
        message: str,
        model: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "model": model} if model else details
        )
        self.model = model
