"""Budget import configuration settings.

Loads configuration from environment variables with sensible defaults.
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for local overrides (thresholds, LLM model, API key)
load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Heuristic thresholds live here so that a reviewer can tune them per
    deployment without touching the extraction code.
    """

    # LLM Configuration (enrichment only)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))
    openai_api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"), repr=False)

    # Column mapping
    header_scan_rows: int = field(default_factory=lambda: int(os.getenv("HEADER_SCAN_ROWS", "15")))
    low_confidence_threshold: float = field(default_factory=lambda: float(os.getenv("LOW_CONFIDENCE_THRESHOLD", "0.6")))

    # Line item extraction
    total_tolerance: float = field(default_factory=lambda: float(os.getenv("TOTAL_TOLERANCE", "0.01")))
    internal_vendor_name: str = field(default_factory=lambda: os.getenv("INTERNAL_VENDOR_NAME", "RCG"))

    # Enrichment
    enrichment_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("ENRICHMENT_TIMEOUT_SECONDS", "30")))
    low_category_confidence: float = field(default_factory=lambda: float(os.getenv("LOW_CATEGORY_CONFIDENCE", "0.5")))

    # Labor rates applied to internal labor items
    labor_billing_rate: float = field(default_factory=lambda: float(os.getenv("LABOR_BILLING_RATE", "75")))
    labor_actual_rate: float = field(default_factory=lambda: float(os.getenv("LABOR_ACTUAL_RATE", "35")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def validate(self) -> None:
        """Validate settings values.

        Raises:
            ValueError: If a threshold is out of range.
        """
        if self.header_scan_rows < 1:
            raise ValueError("HEADER_SCAN_ROWS must be at least 1")
        if not 0 <= self.low_confidence_threshold <= 1:
            raise ValueError("LOW_CONFIDENCE_THRESHOLD must be between 0 and 1")
        if self.total_tolerance < 0:
            raise ValueError("TOTAL_TOLERANCE must not be negative")
        if self.labor_billing_rate <= 0:
            raise ValueError("LABOR_BILLING_RATE must be positive")

    @property
    def llm_configured(self) -> bool:
        """Check if an LLM API key is available for enrichment."""
        return bool(self.openai_api_key)


# Singleton settings instance
settings = Settings()
