"""Column mapper for budget sheets.

Locates the header row of a budget grid and assigns each column a semantic
role (item, subcontractor, labor, material, sub, total, markup,
total-with-markup) using the rulesets in services.vocabulary.

Flow:
1. Score each of the first N rows as a header candidate
2. Pick the row with the most distinct roles, fewest duplicates, best score
3. Resolve each role to a single column, flagging ties as ambiguous
4. Compute mapping confidence once, from the recorded facts
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import structlog

from budget_import.config.settings import settings
from budget_import.models.column_mapping import (
    BudgetColumns,
    ColumnMappingResult,
    ColumnRole,
    COST_ROLES,
)
from budget_import.models.grid import Grid
from budget_import.models.warnings import WarningCode
from budget_import.services.cell_parser import parse_currency
from budget_import.services.vocabulary import RoleMatch, best_role
from budget_import.services.warning_collector import WarningCollector

logger = structlog.get_logger()

# =============================================================================
# Constants
# =============================================================================

# Header row scoring weight per role
HEADER_SCORE_WEIGHTS: Dict[ColumnRole, int] = {
    ColumnRole.ITEM: 5,
    ColumnRole.SUBCONTRACTOR: 2,
    ColumnRole.LABOR: 3,
    ColumnRole.MATERIAL: 3,
    ColumnRole.SUB: 3,
    ColumnRole.TOTAL: 3,
    ColumnRole.MARKUP: 3,
    ColumnRole.TOTAL_WITH_MARKUP: 3,
}

# Rows holding more positive amounts than this look like data, not headers
DATA_ROW_AMOUNT_LIMIT = 3
DATA_ROW_PENALTY = 3

# Confidence weight per slot; the cost slot is the best of labor/material/sub
CONFIDENCE_WEIGHTS: Dict[str, float] = {
    "item": 0.35,
    "cost": 0.35,
    "markup": 0.15,
    "subcontractor": 0.05,
    "total": 0.05,
    "total_with_markup": 0.05,
}
AMBIGUITY_PENALTY = 0.05
AMBIGUITY_CAP = 0.95
UNMAPPED_HEADER_LIMIT = 3
UNMAPPED_HEADER_PENALTY = 0.1


@dataclass
class HeaderCandidate:
    """Scored header row candidate."""

    row_index: int
    matches: Dict[int, RoleMatch] = field(default_factory=dict)
    ignored_columns: Set[int] = field(default_factory=set)
    score: float = 0.0

    @property
    def roles(self) -> Set[ColumnRole]:
        return {match.role for match in self.matches.values()}

    @property
    def duplicate_count(self) -> int:
        counts: Dict[ColumnRole, int] = defaultdict(int)
        for match in self.matches.values():
            counts[match.role] += 1
        return sum(count - 1 for count in counts.values())

    @property
    def is_viable(self) -> bool:
        """A header names the item column and at least one other role."""
        return ColumnRole.ITEM in self.roles and len(self.roles) >= 2

    def rank(self) -> Tuple[int, int, float]:
        return (len(self.roles), -self.duplicate_count, self.score)


def compute_mapping_confidence(
    role_strengths: Dict[ColumnRole, float],
    ambiguous_roles: int = 0,
    unmapped_headers: int = 0
) -> float:
    """Compute overall mapping confidence from resolved roles.

    Weighted sum of match strengths per slot, reduced for ambiguity and for
    a large number of unrecognized headers. Never 1.0 when any role was
    ambiguous.

    Args:
        role_strengths: Match strength of every resolved role.
        ambiguous_roles: Number of roles flagged COLUMN_AMBIGUOUS.
        unmapped_headers: Number of header cells matching no role.

    Returns:
        Confidence in [0, 1].
    """
    slot_strengths = {
        "item": role_strengths.get(ColumnRole.ITEM, 0.0),
        "cost": max(role_strengths.get(role, 0.0) for role in COST_ROLES),
        "markup": role_strengths.get(ColumnRole.MARKUP, 0.0),
        "subcontractor": role_strengths.get(ColumnRole.SUBCONTRACTOR, 0.0),
        "total": role_strengths.get(ColumnRole.TOTAL, 0.0),
        "total_with_markup": role_strengths.get(ColumnRole.TOTAL_WITH_MARKUP, 0.0),
    }
    confidence = sum(
        CONFIDENCE_WEIGHTS[slot] * strength
        for slot, strength in slot_strengths.items()
    )

    if ambiguous_roles:
        confidence = min(confidence - AMBIGUITY_PENALTY * ambiguous_roles, AMBIGUITY_CAP)
    if unmapped_headers > UNMAPPED_HEADER_LIMIT:
        confidence -= UNMAPPED_HEADER_PENALTY

    return round(min(1.0, max(0.0, confidence)), 4)


class ColumnMapper:
    """Infers the header row and column roles of a budget grid."""

    def __init__(
        self,
        scan_rows: Optional[int] = None,
        low_confidence_threshold: Optional[float] = None
    ):
        """Initialize ColumnMapper.

        Args:
            scan_rows: Rows to scan for a header (default from settings).
            low_confidence_threshold: Confidence below which
                LOW_CONFIDENCE_MAPPING is emitted (default from settings).
        """
        self.scan_rows = scan_rows or settings.header_scan_rows
        self.low_confidence_threshold = (
            low_confidence_threshold
            if low_confidence_threshold is not None
            else settings.low_confidence_threshold
        )

    def map(self, grid: Grid) -> ColumnMappingResult:
        """Map grid columns to budget roles.

        Args:
            grid: Decoded budget sheet.

        Returns:
            ColumnMappingResult; columns is None when no header was found.
        """
        collector = WarningCollector(stage="mapping")

        candidate = self.find_header_row(grid)
        if candidate is None:
            collector.add(
                WarningCode.HEADER_NOT_FOUND,
                f"Could not detect a header row with an item column in the "
                f"first {min(grid.row_count, self.scan_rows)} rows",
                rows_scanned=min(grid.row_count, self.scan_rows)
            )
            logger.warning("header_not_found", row_count=grid.row_count)
            return ColumnMappingResult(confidence=0.0, warnings=collector.warnings)

        assignments, strengths, ambiguous = self._resolve_roles(candidate, collector)
        columns = BudgetColumns.from_roles(assignments)

        for role in columns.missing_roles():
            if role not in ambiguous:
                collector.add(
                    WarningCode.COLUMN_MISSING,
                    f"{role.value.replace('_', ' ').capitalize()} column not found",
                    role=role.value
                )
        if not columns.has_cost_column:
            collector.add(
                WarningCode.COLUMN_MISSING,
                "No cost columns (Labor/Material/Sub) found",
                role="cost"
            )

        header_row = grid.row(candidate.row_index)
        unmapped = [
            cell.strip()
            for col, cell in enumerate(header_row)
            if cell.strip()
            and col not in candidate.matches
            and col not in candidate.ignored_columns
        ]

        confidence = compute_mapping_confidence(
            strengths,
            ambiguous_roles=len(ambiguous),
            unmapped_headers=len(unmapped)
        )
        if confidence < self.low_confidence_threshold:
            collector.add(
                WarningCode.LOW_CONFIDENCE_MAPPING,
                f"Column mapping confidence {confidence:.2f} is below "
                f"{self.low_confidence_threshold:.2f}; review the column assignments",
                row_index=candidate.row_index,
                confidence=confidence,
                threshold=self.low_confidence_threshold
            )

        logger.info(
            "column_mapping_completed",
            header_row_index=candidate.row_index,
            confidence=confidence,
            roles_resolved=len(assignments),
            ambiguous_roles=len(ambiguous),
            unmapped_headers=len(unmapped)
        )

        return ColumnMappingResult(
            columns=columns,
            header_row_index=candidate.row_index,
            confidence=confidence,
            unmapped_headers=unmapped,
            role_strengths={role.value: strength for role, strength in strengths.items()},
            warnings=collector.warnings
        )

    def find_header_row(self, grid: Grid) -> Optional[HeaderCandidate]:
        """Find the most header-like row within the scan window.

        Args:
            grid: Decoded budget sheet.

        Returns:
            Best viable HeaderCandidate, or None. Ties keep the earliest row.
        """
        best: Optional[HeaderCandidate] = None
        for row_index in range(min(grid.row_count, self.scan_rows)):
            candidate = self._score_row(row_index, grid.row(row_index))
            if not candidate.is_viable:
                continue
            if best is None or candidate.rank() > best.rank():
                best = candidate
        return best

    def _score_row(self, row_index: int, row: List[str]) -> HeaderCandidate:
        candidate = HeaderCandidate(row_index=row_index)
        for col, cell in enumerate(row):
            match = best_role(cell)
            if match.ignored:
                candidate.ignored_columns.add(col)
            elif match.role is not None:
                candidate.matches[col] = match
                candidate.score += HEADER_SCORE_WEIGHTS[match.role] * match.strength

        if self._count_amounts(row) > DATA_ROW_AMOUNT_LIMIT:
            candidate.score -= DATA_ROW_PENALTY
        return candidate

    @staticmethod
    def _count_amounts(row: List[str]) -> int:
        count = 0
        for cell in row:
            try:
                value = parse_currency(cell)
            except ValueError:
                continue
            if value is not None and value > 0:
                count += 1
        return count

    def _resolve_roles(
        self,
        candidate: HeaderCandidate,
        collector: WarningCollector
    ) -> Tuple[Dict[ColumnRole, int], Dict[ColumnRole, float], Set[ColumnRole]]:
        """Assign one column per role from the header candidate.

        Returns:
            (role -> column, role -> strength, roles flagged ambiguous)
        """
        by_role: Dict[ColumnRole, List[Tuple[int, float]]] = defaultdict(list)
        for col, match in candidate.matches.items():
            by_role[match.role].append((col, match.strength))

        assignments: Dict[ColumnRole, int] = {}
        strengths: Dict[ColumnRole, float] = {}
        ambiguous: Set[ColumnRole] = set()

        for role in ColumnRole:
            if role in assignments:
                continue
            ranked = sorted(by_role.get(role, []), key=lambda c: (-c[1], c[0]))
            if not ranked:
                continue

            top_strength = ranked[0][1]
            tied = [col for col, strength in ranked if strength == top_strength]
            if len(tied) == 1:
                assignments[role] = tied[0]
                strengths[role] = top_strength
                continue

            ambiguous.add(role)
            if role == ColumnRole.ITEM:
                assignments[role] = tied[0]
                strengths[role] = top_strength
                chosen = f"using leftmost column {tied[0]}"
            elif role == ColumnRole.TOTAL and not by_role.get(ColumnRole.TOTAL_WITH_MARKUP):
                # Identical "Total" headers: the later one is taken as the marked-up total
                assignments[ColumnRole.TOTAL] = tied[0]
                assignments[ColumnRole.TOTAL_WITH_MARKUP] = tied[-1]
                strengths[ColumnRole.TOTAL] = top_strength
                strengths[ColumnRole.TOTAL_WITH_MARKUP] = top_strength
                chosen = (
                    f"using column {tied[0]} as total and rightmost column "
                    f"{tied[-1]} as total with markup"
                )
            else:
                chosen = "leaving it unmapped"

            collector.add(
                WarningCode.COLUMN_AMBIGUOUS,
                f"{len(tied)} columns match '{role.value}' equally well; {chosen}",
                row_index=candidate.row_index,
                role=role.value,
                candidates=tied
            )

        return assignments, strengths, ambiguous
