"""Append-only warning log shared by the import stages."""

from typing import Any, Iterable, List, Optional

import structlog

from budget_import.models.warnings import ImportWarning, WarningCode

logger = structlog.get_logger()


class WarningCollector:
    """Accumulates ImportWarning entries for one stage of one import run.

    No deduplication: the same issue on two rows is two warnings, each with
    its own row index. Adding a warning never raises and never changes the
    caller's control flow.
    """

    def __init__(self, stage: str = "import"):
        self.stage = stage
        self._warnings: List[ImportWarning] = []

    def add(
        self,
        code: WarningCode,
        message: str,
        row_index: Optional[int] = None,
        **details: Any
    ) -> ImportWarning:
        """Record a warning.

        Args:
            code: Warning code.
            message: Human-readable explanation.
            row_index: 0-based grid row, if the warning is row-specific.
            **details: Structured context.

        Returns:
            The recorded warning.
        """
        warning = ImportWarning(
            code=code,
            message=message,
            row_index=row_index,
            details=details
        )
        self._warnings.append(warning)
        logger.debug(
            "import_warning",
            stage=self.stage,
            code=warning.code,
            row_index=row_index
        )
        return warning

    def extend(self, warnings: Iterable[ImportWarning]) -> None:
        """Append warnings produced elsewhere, keeping their order."""
        self._warnings.extend(warnings)

    @property
    def warnings(self) -> List[ImportWarning]:
        """Copy of the warnings recorded so far."""
        return list(self._warnings)

    def count(self, code: WarningCode) -> int:
        """Count warnings with a given code."""
        return sum(1 for warning in self._warnings if warning.code == code)

    def has(self, code: WarningCode) -> bool:
        """Check if any warning with a given code was recorded."""
        return any(warning.code == code for warning in self._warnings)

    def __len__(self) -> int:
        return len(self._warnings)
