"""Vocabulary rulesets for budget sheet parsing.

Every heuristic string table used by the mapper and the extractor lives
here, together with the normalization and matching functions applied to it:

- HEADER_VOCABULARY: canonical column role -> accepted header variants
- IGNORED_HEADER_VOCABULARY: recognized headers that carry no role
- STOP_MARKERS: text that ends the line item table
- SUMMARY_PATTERN: item names of subtotal/summary rows

Variants are stored already normalized (see normalize_header).
"""

import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from fuzzywuzzy import fuzz

from budget_import.models.column_mapping import ColumnRole


# =============================================================================
# HEADER VOCABULARY
# =============================================================================

HEADER_VOCABULARY: Dict[ColumnRole, List[str]] = {
    ColumnRole.ITEM: [
        "item", "items", "item name", "item description", "line item",
        "description", "description of work", "desc", "scope",
        "scope of work", "task", "work item",
    ],
    ColumnRole.SUBCONTRACTOR: [
        "subcontractor", "subcontractors", "sub contractor", "vendor",
        "trade", "company", "contractor",
    ],
    ColumnRole.LABOR: [
        "labor", "labour", "labor cost", "labour cost", "labor amt",
        "labor amount", "labor total",
    ],
    ColumnRole.MATERIAL: [
        "material", "materials", "mat", "material cost", "materials cost",
        "mat cost",
    ],
    ColumnRole.SUB: [
        "sub", "subs", "sub cost", "sub amount", "sub total", "subcontract",
        "subcontract cost", "subcontractor cost", "subcontractor amount",
    ],
    ColumnRole.TOTAL: [
        "total", "total cost", "cost total", "ext", "extended",
        "extended cost",
    ],
    ColumnRole.MARKUP: [
        "markup", "mark up", "markup pct", "mark up pct", "mu", "mu pct",
        "margin pct", "markup percent",
    ],
    ColumnRole.TOTAL_WITH_MARKUP: [
        "total with mark up", "total with markup", "total w mark up",
        "total w markup", "sell", "sell price", "selling price", "price",
        "total price", "unit price", "price unit", "contract price",
    ],
}

# Recognized so they are not reported as unmapped, but never assigned a role
IGNORED_HEADER_VOCABULARY: List[str] = [
    "profit", "gross profit", "gp", "margin", "profit margin", "notes",
    "comments", "qty", "quantity", "unit", "uom",
]

# Minimum strength for a header cell to count as a match
MIN_MATCH_STRENGTH = 0.6

# Fuzzy matching applies to variants of at least this length
FUZZY_MIN_LENGTH = 5
FUZZY_MIN_RATIO = 85


# =============================================================================
# TABLE REGION VOCABULARY
# =============================================================================

STOP_MARKERS: List[str] = [
    "grand total",
    "notes",
    "total cost",
    "total contract",
    "total job proposal",
    "construction contract",
    "expenses",
    "expense tracking",
    "expense log",
    "subcontractor expenses",
    "sub expenses",
    "labor tracking",
    "timecard",
    "payroll",
    "reconciliation",
    "terms and conditions",
    "exclusions",
    "signature",
    "hereby",
    "contingency",
]

SUMMARY_PATTERN = re.compile(r"\b(sub ?totals?|totals?|summary)\b")

# A row of dashes, equals signs or underscores drawn as a separator
RULE_LINE_PATTERN = re.compile(r"^\s*[-=_]{3,}[-=_\s]*$")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class RoleMatch(NamedTuple):
    """Best vocabulary match for a single header cell."""

    role: Optional[ColumnRole]
    strength: float
    ignored: bool = False


# =============================================================================
# NORMALIZATION & MATCHING
# =============================================================================


def normalize_header(text: Optional[str]) -> str:
    """Normalize header text for comparison.

    Lowercases, turns "%" into the token "pct", replaces every other run of
    punctuation or whitespace with a single space.

    >>> normalize_header("  Total w/ Mark-Up ")
    'total w mark up'
    >>> normalize_header("Markup %")
    'markup pct'
    """
    lowered = (text or "").lower().replace("%", " pct ")
    return _NON_ALNUM.sub(" ", lowered).strip()


def match_strength(normalized: str, variant: str) -> float:
    """Score how well a normalized header matches one vocabulary variant.

    Exact match scores 1.0; containment either way scores 0.9 times the
    length ratio; a close fuzzy match on longer variants scores 0.8 times
    the similarity ratio. The best applicable score is returned.
    """
    if not normalized:
        return 0.0
    if normalized == variant:
        return 1.0

    strength = 0.0
    if variant in normalized or normalized in variant:
        shorter, longer = sorted((len(normalized), len(variant)))
        strength = 0.9 * shorter / longer

    if len(variant) >= FUZZY_MIN_LENGTH:
        ratio = fuzz.ratio(normalized, variant)
        if ratio >= FUZZY_MIN_RATIO:
            strength = max(strength, 0.8 * ratio / 100)

    return strength


def _best_variant(normalized: str, variants: Iterable[str]) -> float:
    best = 0.0
    for variant in variants:
        best = max(best, match_strength(normalized, variant))
        if best == 1.0:
            break
    return best


def best_role(header: Optional[str]) -> RoleMatch:
    """Find the column role a header cell most likely names.

    Args:
        header: Raw header cell text.

    Returns:
        RoleMatch with role None when nothing reaches MIN_MATCH_STRENGTH.
        Ignored vocabulary wins only when it matches more strongly than any
        role, in which case ignored is True.
    """
    normalized = normalize_header(header)
    if not normalized:
        return RoleMatch(None, 0.0)

    role: Optional[ColumnRole] = None
    strength = 0.0
    for candidate, variants in HEADER_VOCABULARY.items():
        score = _best_variant(normalized, variants)
        if score > strength:
            role, strength = candidate, score

    ignored_strength = _best_variant(normalized, IGNORED_HEADER_VOCABULARY)
    if ignored_strength >= MIN_MATCH_STRENGTH and ignored_strength > strength:
        return RoleMatch(None, ignored_strength, ignored=True)

    if strength < MIN_MATCH_STRENGTH:
        return RoleMatch(None, strength)
    return RoleMatch(role, round(strength, 4))


# =============================================================================
# ROW VOCABULARY
# =============================================================================


def find_stop_marker(cells: Iterable[str]) -> Optional[Tuple[int, str]]:
    """Find the first cell that terminates the line item table.

    A cell terminates the table when its normalized text starts with a stop
    marker (on a word boundary) or when the row is a rule line.

    Args:
        cells: Row cells, left to right.

    Returns:
        (column index, marker) or None.
    """
    cells = list(cells)
    non_blank = [cell for cell in cells if cell.strip()]
    if non_blank and all(RULE_LINE_PATTERN.match(cell) for cell in non_blank):
        first = next(i for i, cell in enumerate(cells) if cell.strip())
        return first, "rule line"

    for col, cell in enumerate(cells):
        normalized = normalize_header(cell)
        if not normalized:
            continue
        for marker in STOP_MARKERS:
            if normalized == marker or normalized.startswith(marker + " "):
                return col, marker
    return None


def is_summary_label(text: Optional[str]) -> bool:
    """Check if an item name reads like a subtotal or summary line."""
    return bool(SUMMARY_PATTERN.search(normalize_header(text)))
