"""Column mapping models.

Describes which grid column carries each semantic role of a budget sheet
and how confident the mapper is about that assignment.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from budget_import.models.warnings import ImportWarning


class ColumnRole(str, Enum):
    """Semantic role a budget sheet column can play."""

    ITEM = "item"
    SUBCONTRACTOR = "subcontractor"
    LABOR = "labor"
    MATERIAL = "material"
    SUB = "sub"
    TOTAL = "total"
    MARKUP = "markup"
    TOTAL_WITH_MARKUP = "total_with_markup"


# Roles holding a cost component, in split order
COST_ROLES = (ColumnRole.LABOR, ColumnRole.MATERIAL, ColumnRole.SUB)

OPTIONAL_ROLES = tuple(role for role in ColumnRole if role != ColumnRole.ITEM)


class BudgetColumns(BaseModel):
    """Resolved column index per role.

    item_col is always resolved; every other role is independently optional.
    """

    item_col: int = Field(alias="itemCol", ge=0)
    subcontractor_col: Optional[int] = Field(default=None, alias="subcontractorCol", ge=0)
    labor_col: Optional[int] = Field(default=None, alias="laborCol", ge=0)
    material_col: Optional[int] = Field(default=None, alias="materialCol", ge=0)
    sub_col: Optional[int] = Field(default=None, alias="subCol", ge=0)
    total_col: Optional[int] = Field(default=None, alias="totalCol", ge=0)
    markup_col: Optional[int] = Field(default=None, alias="markupCol", ge=0)
    total_with_markup_col: Optional[int] = Field(default=None, alias="totalWithMarkupCol", ge=0)

    class Config:
        populate_by_name = True
        frozen = True

    @model_validator(mode="after")
    def check_distinct_columns(self) -> "BudgetColumns":
        """A column can serve at most one role."""
        used = [col for col in self.as_dict().values() if col is not None]
        if len(used) != len(set(used)):
            raise ValueError(f"column assigned to more than one role: {self.as_dict()}")
        return self

    @classmethod
    def from_roles(cls, assignments: Dict[ColumnRole, int]) -> "BudgetColumns":
        """Build from a role -> column mapping."""
        return cls(**{f"{role.value}_col": col for role, col in assignments.items()})

    def column_for(self, role: ColumnRole) -> Optional[int]:
        """Get the column index for a role, or None if unresolved."""
        return getattr(self, f"{ColumnRole(role).value}_col")

    def as_dict(self) -> Dict[ColumnRole, Optional[int]]:
        """Role -> column index for every role."""
        return {role: self.column_for(role) for role in ColumnRole}

    def missing_roles(self) -> List[ColumnRole]:
        """Optional roles left unresolved."""
        return [role for role in OPTIONAL_ROLES if self.column_for(role) is None]

    @property
    def has_cost_column(self) -> bool:
        """Check if at least one labor/material/sub column is mapped."""
        return any(self.column_for(role) is not None for role in COST_ROLES)


class ColumnMappingResult(BaseModel):
    """Outcome of header detection and column-role inference."""

    columns: Optional[BudgetColumns] = Field(
        default=None,
        description="Resolved columns; None when the header was not found"
    )
    header_row_index: Optional[int] = Field(
        default=None,
        alias="headerRowIndex",
        ge=0,
        description="0-based index of the detected header row"
    )
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Overall mapping confidence (0-1)"
    )
    unmapped_headers: List[str] = Field(
        default_factory=list,
        alias="unmappedHeaders",
        description="Header cells that matched no role"
    )
    role_strengths: Dict[str, float] = Field(
        default_factory=dict,
        alias="roleStrengths",
        description="Match strength per resolved role"
    )
    warnings: List[ImportWarning] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def success(self) -> bool:
        """Check if a header row with an item column was resolved."""
        return self.columns is not None and self.header_row_index is not None
