"""Line item extractor for budget sheets.

Walks the rows below a mapped header and turns each data row into one or
more ExtractedLineItem records.

Row classification (first match wins):
1. Stop marker  - terminator text, a rule line, or the start of three
                  consecutive empty rows; extraction halts here
2. Empty row    - no item name and no amounts; skipped
3. Summary row  - subtotal/total label (or no label) with amounts; skipped
4. Data row     - parsed, split per cost component, reconciled

Only a failed column mapping makes the run unsuccessful; every other
anomaly becomes a warning.
"""

from typing import Callable, Dict, List, Optional, Tuple

import structlog

from budget_import.config.settings import settings
from budget_import.models.column_mapping import (
    BudgetColumns,
    ColumnMappingResult,
    ColumnRole,
    COST_ROLES,
)
from budget_import.models.grid import Grid
from budget_import.models.import_result import (
    ComputedTotals,
    ExtractionMetadata,
    ExtractionResult,
)
from budget_import.models.line_item import CostComponent, ExtractedLineItem, RawCells
from budget_import.models.warnings import WarningCode
from budget_import.services.cell_parser import (
    ZERO_EPSILON,
    is_blank,
    parse_currency,
    parse_percent,
    parse_stated_total,
    round2,
)
from budget_import.services.vocabulary import find_stop_marker, is_summary_label
from budget_import.services.warning_collector import WarningCollector

logger = structlog.get_logger()

# =============================================================================
# Constants
# =============================================================================

# Consecutive empty rows that end the table
EMPTY_RUN_LENGTH = 3

# Money columns consulted when deciding whether a row carries amounts
AMOUNT_ROLES = COST_ROLES + (ColumnRole.TOTAL, ColumnRole.TOTAL_WITH_MARKUP)

# Name suffix for split components; None keeps the row name
SPLIT_NAME_SUFFIXES: Dict[CostComponent, Optional[str]] = {
    CostComponent.LABOR: None,
    CostComponent.MATERIAL: "Materials",
    CostComponent.SUB: "Subcontract",
}

ROLE_LABELS: Dict[ColumnRole, str] = {
    ColumnRole.LABOR: "labor",
    ColumnRole.MATERIAL: "material",
    ColumnRole.SUB: "sub",
    ColumnRole.TOTAL: "total",
    ColumnRole.MARKUP: "markup",
    ColumnRole.TOTAL_WITH_MARKUP: "total with markup",
}


def _silent_amount(text: str) -> Optional[float]:
    try:
        return parse_currency(text)
    except ValueError:
        return None


def exceeds_tolerance(computed: float, stated: float, tolerance: float) -> bool:
    """Check if a computed amount differs from a stated one beyond tolerance.

    Differences within a cent always pass. A stated zero only matches a
    computed zero.
    """
    difference = abs(computed - stated)
    if difference <= ZERO_EPSILON:
        return False
    if abs(stated) <= ZERO_EPSILON:
        return True
    return difference / abs(stated) > tolerance


class LineItemExtractor:
    """Extracts typed cost line items from a mapped budget grid."""

    def __init__(
        self,
        internal_vendor_name: Optional[str] = None,
        total_tolerance: Optional[float] = None
    ):
        """Initialize LineItemExtractor.

        Args:
            internal_vendor_name: Vendor assigned to in-house labor and
                material (default from settings).
            total_tolerance: Relative tolerance for stated totals
                (default from settings).
        """
        self.internal_vendor_name = (
            internal_vendor_name
            if internal_vendor_name is not None
            else settings.internal_vendor_name
        )
        self.total_tolerance = (
            total_tolerance if total_tolerance is not None else settings.total_tolerance
        )

    def extract(self, grid: Grid, column_mapping: ColumnMappingResult) -> ExtractionResult:
        """Extract line items from the rows below the header.

        Args:
            grid: Decoded budget sheet.
            column_mapping: Output of ColumnMapper.map for the same grid.

        Returns:
            ExtractionResult carrying the mapping warnings followed by the
            extraction warnings.
        """
        collector = WarningCollector(stage="extraction")
        collector.extend(column_mapping.warnings)

        if not column_mapping.success:
            logger.warning("extraction_skipped", reason=WarningCode.HEADER_NOT_FOUND.value)
            return ExtractionResult(
                success=False,
                warnings=collector.warnings,
                metadata=ExtractionMetadata(
                    stop_reason=WarningCode.HEADER_NOT_FOUND.value,
                    mapping_confidence=column_mapping.confidence
                )
            )

        columns = column_mapping.columns
        start_row = column_mapping.header_row_index + 1

        items: List[ExtractedLineItem] = []
        rows_extracted = 0
        rows_skipped_empty = 0
        rows_skipped_summary = 0
        compound_rows_split = 0
        stop_row_index: Optional[int] = None
        stop_reason: Optional[str] = None

        for row_index in range(start_row, grid.row_count):
            row = grid.row(row_index)

            marker = find_stop_marker(row)
            if marker is not None:
                col, text = marker
                stop_row_index, stop_reason = row_index, WarningCode.STOP_MARKER_FOUND.value
                collector.add(
                    WarningCode.STOP_MARKER_FOUND,
                    f'Stop marker found: "{text}"',
                    row_index=row_index,
                    marker=text,
                    column=col
                )
                break

            item_text = grid.cell(row_index, columns.item_col).strip()
            has_amount = self._has_amount(grid, row_index, columns)

            if not item_text and not has_amount:
                if self._starts_empty_run(grid, row_index, columns):
                    stop_row_index, stop_reason = row_index, WarningCode.STOP_BY_STRUCTURE.value
                    collector.add(
                        WarningCode.STOP_BY_STRUCTURE,
                        f"Stopped at {EMPTY_RUN_LENGTH} consecutive empty rows",
                        row_index=row_index,
                        empty_rows=EMPTY_RUN_LENGTH
                    )
                    break
                rows_skipped_empty += 1
                collector.add(
                    WarningCode.SKIPPED_EMPTY_ROW,
                    "Skipped empty row",
                    row_index=row_index,
                    reason="blank"
                )
                continue

            if has_amount and (not item_text or is_summary_label(item_text)):
                rows_skipped_summary += 1
                label = item_text or "(unlabeled)"
                collector.add(
                    WarningCode.SKIPPED_SUMMARY_ROW,
                    f'Skipped summary row: "{label}"',
                    row_index=row_index,
                    item=item_text or None,
                    reason="summary_label" if item_text else "unlabeled_amounts"
                )
                continue

            row_items = self._extract_row(grid, row_index, columns, collector)
            if not row_items:
                rows_skipped_empty += 1
                continue

            rows_extracted += 1
            if len(row_items) > 1:
                compound_rows_split += 1
            items.extend(row_items)

        end_row = stop_row_index if stop_row_index is not None else grid.row_count
        total_cost = round2(sum(item.cost for item in items))
        total_price = round2(sum(item.price or 0.0 for item in items))

        metadata = ExtractionMetadata(
            header_row_index=column_mapping.header_row_index,
            stop_row_index=stop_row_index,
            stop_reason=stop_reason,
            rows_scanned=max(0, end_row - start_row),
            rows_extracted=rows_extracted,
            rows_skipped_empty=rows_skipped_empty,
            rows_skipped_summary=rows_skipped_summary,
            items_extracted=len(items),
            compound_rows_split=compound_rows_split,
            mapping_confidence=column_mapping.confidence,
            computed_totals=ComputedTotals(total_cost=total_cost, total_price=total_price)
        )

        logger.info(
            "extraction_completed",
            header_row_index=column_mapping.header_row_index,
            stop_row_index=stop_row_index,
            stop_reason=stop_reason,
            rows_extracted=rows_extracted,
            items_extracted=len(items),
            compound_rows_split=compound_rows_split,
            warning_count=len(collector)
        )

        return ExtractionResult(
            success=True,
            items=items,
            warnings=collector.warnings,
            metadata=metadata
        )

    # =========================================================================
    # Row classification
    # =========================================================================

    @staticmethod
    def _has_amount(grid: Grid, row_index: int, columns: BudgetColumns) -> bool:
        """Check if any money column of the row holds a non-zero amount."""
        for role in AMOUNT_ROLES:
            value = _silent_amount(grid.cell(row_index, columns.column_for(role)))
            if value is not None and abs(value) > ZERO_EPSILON:
                return True
        return False

    def _starts_empty_run(self, grid: Grid, row_index: int, columns: BudgetColumns) -> bool:
        """Check if this row begins EMPTY_RUN_LENGTH consecutive empty rows."""
        if row_index + EMPTY_RUN_LENGTH > grid.row_count:
            return False
        for offset in range(EMPTY_RUN_LENGTH):
            index = row_index + offset
            if grid.cell(index, columns.item_col).strip():
                return False
            if self._has_amount(grid, index, columns):
                return False
        return True

    # =========================================================================
    # Data rows
    # =========================================================================

    def _parse_cell(
        self,
        row_index: int,
        role: ColumnRole,
        text: Optional[str],
        parser: Callable[[Optional[str]], Optional[float]],
        code: WarningCode,
        collector: WarningCollector
    ) -> Optional[float]:
        """Parse a numeric cell; unreadable text is warned about and treated as absent."""
        try:
            return parser(text)
        except ValueError:
            collector.add(
                code,
                f'Could not read {ROLE_LABELS[role]} value "{text}"',
                row_index=row_index,
                role=role.value,
                value=text
            )
            return None

    def _extract_row(
        self,
        grid: Grid,
        row_index: int,
        columns: BudgetColumns,
        collector: WarningCollector
    ) -> List[ExtractedLineItem]:
        """Turn one data row into one item per populated cost component."""
        item_raw = grid.cell(row_index, columns.item_col).strip()
        name = " ".join(item_raw.split())

        raw_text: Dict[ColumnRole, Optional[str]] = {}
        for role in ColumnRole:
            if role == ColumnRole.ITEM:
                continue
            text = grid.cell(row_index, columns.column_for(role))
            raw_text[role] = None if is_blank(text) else text.strip()

        costs: Dict[ColumnRole, Optional[float]] = {
            role: self._parse_cell(
                row_index, role, raw_text[role], parse_currency,
                WarningCode.UNPARSEABLE_CURRENCY, collector
            )
            for role in COST_ROLES
        }
        stated_total = self._parse_cell(
            row_index, ColumnRole.TOTAL, raw_text[ColumnRole.TOTAL], parse_stated_total,
            WarningCode.UNPARSEABLE_CURRENCY, collector
        )
        stated_total_with_markup = self._parse_cell(
            row_index, ColumnRole.TOTAL_WITH_MARKUP, raw_text[ColumnRole.TOTAL_WITH_MARKUP],
            parse_stated_total, WarningCode.UNPARSEABLE_CURRENCY, collector
        )
        markup_pct = self._parse_cell(
            row_index, ColumnRole.MARKUP, raw_text[ColumnRole.MARKUP], parse_percent,
            WarningCode.UNPARSEABLE_PERCENT, collector
        )

        components: List[Tuple[CostComponent, float]] = [
            (CostComponent(role.value), value)
            for role, value in costs.items()
            if value is not None and abs(value) > ZERO_EPSILON
        ]
        if not components:
            collector.add(
                WarningCode.SKIPPED_EMPTY_ROW,
                f'Skipped row with no cost values: "{name}"',
                row_index=row_index,
                item=name,
                reason="no_cost_values"
            )
            return []

        if markup_pct is None:
            collector.add(
                WarningCode.MARKUP_MISSING,
                f'Markup missing for "{name}"; price left empty',
                row_index=row_index,
                item=name
            )

        raw = RawCells(
            subcontractor_cell=raw_text[ColumnRole.SUBCONTRACTOR],
            labor_cell=raw_text[ColumnRole.LABOR],
            material_cell=raw_text[ColumnRole.MATERIAL],
            sub_cell=raw_text[ColumnRole.SUB],
            total_cell=raw_text[ColumnRole.TOTAL],
            markup_cell=raw_text[ColumnRole.MARKUP],
            total_with_markup_cell=raw_text[ColumnRole.TOTAL_WITH_MARKUP],
        )
        was_split = len(components) > 1
        split_components = {component for component, _ in components}

        items = []
        for split_index, (component, value) in enumerate(components):
            cost = round2(value)
            price = round2(cost * (1 + markup_pct / 100)) if markup_pct is not None else None

            if cost < 0:
                collector.add(
                    WarningCode.NEGATIVE_VALUE,
                    f'Negative {component.value} cost {cost:,.2f} for "{name}"',
                    row_index=row_index,
                    component=component.value,
                    value=cost
                )

            items.append(ExtractedLineItem(
                source_row_index=row_index,
                split_index=split_index if was_split else 0,
                source_item_name_raw=item_raw,
                name=self._component_name(name, component, was_split, split_components),
                component=component,
                vendor_name=self._vendor_for(component, raw_text[ColumnRole.SUBCONTRACTOR]),
                cost=cost,
                markup_pct=markup_pct,
                price=price,
                was_split=was_split,
                split_from_name=name if was_split else None,
                raw=raw
            ))

        self._reconcile(row_index, name, items, stated_total, stated_total_with_markup, collector)
        return items

    @staticmethod
    def _component_name(
        name: str,
        component: CostComponent,
        was_split: bool,
        split_components: set
    ) -> str:
        """Name a component item so split siblings stay distinguishable."""
        if not was_split:
            return name
        suffix = SPLIT_NAME_SUFFIXES[component]
        if component == CostComponent.SUB and CostComponent.LABOR not in split_components:
            suffix = None
        return f"{name} - {suffix}" if suffix else name

    def _vendor_for(self, component: CostComponent, subcontractor: Optional[str]) -> Optional[str]:
        """Assign a vendor.

        Sub components belong to the listed subcontractor. Labor and
        material belong to the internal vendor unless another company is
        listed on the row.
        """
        if component == CostComponent.SUB:
            return subcontractor
        internal = self.internal_vendor_name or None
        if not subcontractor:
            return internal
        if internal and subcontractor.upper() == internal.upper():
            return internal
        return subcontractor

    def _reconcile(
        self,
        row_index: int,
        name: str,
        items: List[ExtractedLineItem],
        stated_total: Optional[float],
        stated_total_with_markup: Optional[float],
        collector: WarningCollector
    ) -> None:
        """Compare the row's computed cost and price with the sheet's totals.

        The computed values stay authoritative; a mismatch is only reported.
        """
        checks = []
        if stated_total is not None:
            checks.append(("total", round2(sum(item.cost for item in items)), stated_total))
        if stated_total_with_markup is not None and items[0].price is not None:
            computed_price = round2(sum(item.price for item in items))
            checks.append(("total_with_markup", computed_price, stated_total_with_markup))

        for field_name, computed, stated in checks:
            if not exceeds_tolerance(computed, stated, self.total_tolerance):
                continue
            collector.add(
                WarningCode.TOTAL_MISMATCH,
                f'Computed {field_name.replace("_", " ")} {computed:,.2f} for "{name}" '
                f'differs from sheet value {stated:,.2f}',
                row_index=row_index,
                field=field_name,
                computed=computed,
                stated=stated,
                difference=round2(computed - stated),
                tolerance=self.total_tolerance
            )
