"""Grid model for budget import.

A Grid is the already-decoded spreadsheet: a rectangular matrix of text
cells. The producer (CSV/XLSX reader) is responsible for padding short rows;
downstream stages only read it.
"""

from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field, model_validator


class Grid(BaseModel):
    """Immutable rectangular matrix of text cells."""

    rows: List[List[str]] = Field(
        default_factory=list,
        description="Cell text, row-major"
    )
    row_count: int = Field(
        alias="rowCount",
        ge=0,
        description="Number of rows"
    )
    col_count: int = Field(
        alias="colCount",
        ge=0,
        description="Number of columns in every row"
    )

    class Config:
        populate_by_name = True
        frozen = True

    @model_validator(mode="after")
    def check_rectangular(self) -> "Grid":
        """Reject ragged grids."""
        if len(self.rows) != self.row_count:
            raise ValueError(
                f"row_count is {self.row_count} but grid has {len(self.rows)} rows"
            )
        for index, row in enumerate(self.rows):
            if len(row) != self.col_count:
                raise ValueError(
                    f"row {index} has {len(row)} cells, expected {self.col_count}"
                )
        return self

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Any]]) -> "Grid":
        """Build a grid from decoded rows, padding short rows with "".

        None cells become empty strings; other values are stringified.

        Args:
            rows: Row-major cell values as produced by a file reader.

        Returns:
            Rectangular Grid.
        """
        col_count = max((len(row) for row in rows), default=0)
        padded = []
        for row in rows:
            cells = ["" if value is None else str(value) for value in row]
            cells.extend([""] * (col_count - len(cells)))
            padded.append(cells)
        return cls(rows=padded, row_count=len(padded), col_count=col_count)

    def row(self, index: int) -> List[str]:
        """Get a row by index."""
        return self.rows[index]

    def cell(self, row: int, col: Optional[int]) -> str:
        """Get a cell's text, or "" when the column is not mapped."""
        if col is None:
            return ""
        return self.rows[row][col]
