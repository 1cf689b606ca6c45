"""
Assembles the cell grid of a pivot table with merged headers and subtotal rows.

The grid mirrors the classic HTML pivot table:

    +---------------+-----------+----------------------+--------+
    | corner        | col attr0 | col key labels, lvl0 | Totals |
    |               | col attr1 | col key labels, lvl1 |        |
    +---------------+-----------+                      |        |
    | row attrs ... |           |                      |        |
    +---------------+-----------+----------------------+--------+
    | row key labels            | values               | row    |
    | (Subtotal rows)           |                      | totals |
    +---------------------------+----------------------+--------+
    | Totals                    | column totals        | grand  |
    +---------------------------+----------------------+--------+

Row and column header cells are merged according to spans.GroupIndex. With
subtotals enabled, subtotal rows are inserted after each closing group and
the enclosing row labels grow to cover them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Protocol, Sequence, Tuple

from .exceptions import LayoutError, PivotLayoutBaseError
from .spans import SKIP_SPAN, GroupIndex

logger = logging.getLogger("pivot_layout.layout")

Key = Tuple[Any, ...]

# Cell kinds
CORNER = "corner"
AXIS_LABEL = "axis_label"
COL_LABEL = "col_label"
ROW_LABEL = "row_label"
VALUE = "value"
ROW_TOTAL = "row_total"
COL_TOTAL = "col_total"
GRAND_TOTAL = "grand_total"
TOTAL_LABEL = "total_label"
SUBTOTAL_LABEL = "subtotal_label"

HEADER_KINDS = frozenset({CORNER, AXIS_LABEL, COL_LABEL, ROW_LABEL, TOTAL_LABEL, SUBTOTAL_LABEL})
NUMERIC_KINDS = frozenset({VALUE, ROW_TOTAL, COL_TOTAL, GRAND_TOTAL})

TOTALS_TEXT = "Totals"


class PivotDataProvider(Protocol):
    """What the layout needs from an aggregation provider (e.g. FramePivotData)."""

    def get_row_keys(self) -> List[Key]: ...

    def get_col_keys(self) -> List[Key]: ...

    def get_value(self, row_key: Key, col_key: Key) -> Optional[Any]: ...


@dataclass(frozen=True)
class LayoutCell:
    """One (possibly merged) cell of the grid, 0-based coordinates."""

    row: int
    col: int
    value: Any
    kind: str
    row_span: int = 1
    col_span: int = 1
    row_key: Optional[Key] = None
    col_key: Optional[Key] = None

    @property
    def last_row(self) -> int:
        return self.row + self.row_span - 1

    @property
    def last_col(self) -> int:
        return self.col + self.col_span - 1

    @property
    def is_merged(self) -> bool:
        return self.row_span > 1 or self.col_span > 1


@dataclass
class TableLayout:
    """Cell grid of a rendered pivot table."""

    cells: List[LayoutCell]
    n_rows: int
    n_cols: int
    header_rows: int  # rows above the first row key
    data_col: int  # first value column
    row_attrs: List[str]
    col_attrs: List[str]
    subtotals: bool

    def __iter__(self) -> Iterator[LayoutCell]:
        return iter(self.cells)

    def cells_of_kind(self, *kinds: str) -> List[LayoutCell]:
        return [cell for cell in self.cells if cell.kind in kinds]

    def cell_at(self, row: int, col: int) -> Optional[LayoutCell]:
        """The cell whose (merged) range covers (row, col), if any."""
        for cell in self.cells:
            if cell.row <= row <= cell.last_row and cell.col <= col <= cell.last_col:
                return cell
        return None

    def to_grid(self) -> List[List[Any]]:
        """Values as a dense row-major grid; merged ranges hold their value in the top-left cell only."""
        grid: List[List[Any]] = [[None] * self.n_cols for _ in range(self.n_rows)]
        for cell in self.cells:
            grid[cell.row][cell.col] = cell.value
        return grid


def _build_index(keys: Sequence[Key], axis_label: str) -> GroupIndex:
    try:
        return GroupIndex(keys)
    except PivotLayoutBaseError as e:
        logger.error(f"Invalid {axis_label} keys: {e}")
        raise LayoutError(f"Invalid {axis_label} keys: {e}") from e


def build_table_layout(pivot_data: PivotDataProvider,
                       row_attrs: Sequence[str],
                       col_attrs: Sequence[str],
                       subtotals: bool = False) -> TableLayout:
    """
    Lays out the pivot table grid.

    Args:
        pivot_data: Provider of sorted row/column keys and values.
        row_attrs: Names of the row grouping attributes, outermost first.
        col_attrs: Names of the column grouping attributes, outermost first.
        subtotals: Insert a subtotal row after every group of two or more
                   row keys at each non-leaf row level.

    Returns:
        The TableLayout.

    Raises:
        LayoutError: If the keys do not match the attribute counts or are
                     malformed.
    """
    row_attrs = list(row_attrs)
    col_attrs = list(col_attrs)
    row_keys = [tuple(k) for k in pivot_data.get_row_keys()]
    col_keys = [tuple(k) for k in pivot_data.get_col_keys()]
    n_row_attrs, n_col_attrs = len(row_attrs), len(col_attrs)

    for keys, expected, axis_label in ((row_keys, n_row_attrs, "row"), (col_keys, n_col_attrs, "column")):
        bad = [k for k in keys if len(k) != expected]
        if bad:
            msg = f"{axis_label.capitalize()} key {bad[0]!r} has {len(bad[0])} labels, expected {expected}."
            logger.error(msg)
            raise LayoutError(msg)

    row_index = _build_index(row_keys, "row")
    col_index = _build_index(col_keys, "column")

    # Row label columns, then one column for the column axis labels
    axis_col = n_row_attrs
    data_col = n_row_attrs + 1 if n_col_attrs else max(n_row_attrs, 1)
    total_col = data_col + len(col_keys)
    header_rows = n_col_attrs + (1 if n_row_attrs else 0)
    cells: List[LayoutCell] = []

    logger.debug(f"Laying out {len(row_keys)} row keys x {len(col_keys)} column keys (subtotals={subtotals}).")

    # --- Column header rows ---
    for j, attr in enumerate(col_attrs):
        if j == 0 and n_row_attrs:
            cells.append(LayoutCell(0, 0, None, CORNER, row_span=n_col_attrs, col_span=n_row_attrs))
        cells.append(LayoutCell(j, axis_col, attr, AXIS_LABEL))

        for i, col_key in enumerate(col_keys):
            span = col_index.span_size(i, j)
            if span == SKIP_SPAN:
                continue
            # The innermost level also covers the row attribute header row
            row_span = 2 if j == n_col_attrs - 1 and n_row_attrs else 1
            cells.append(LayoutCell(j, data_col + i, col_key[j], COL_LABEL,
                                    row_span=row_span, col_span=span, col_key=col_key[:j + 1]))

        if j == 0:
            cells.append(LayoutCell(0, total_col, TOTALS_TEXT, TOTAL_LABEL, row_span=header_rows))

    # --- Row attribute header row ---
    if n_row_attrs:
        for i, attr in enumerate(row_attrs):
            cells.append(LayoutCell(n_col_attrs, i, attr, AXIS_LABEL))
        if not n_col_attrs:
            cells.append(LayoutCell(n_col_attrs, total_col, TOTALS_TEXT, TOTAL_LABEL))

    # --- Body ---
    label_width = data_col
    grid_row = header_rows
    for i, row_key in enumerate(row_keys):
        for j in range(n_row_attrs):
            span = row_index.span_size(i, j)
            if span == SKIP_SPAN:
                continue
            if subtotals:
                span += row_index.parent_span_adjustment(i, j)
            col_span = 2 if j == n_row_attrs - 1 and n_col_attrs else 1
            cells.append(LayoutCell(grid_row, j, row_key[j], ROW_LABEL,
                                    row_span=span, col_span=col_span, row_key=row_key[:j + 1]))

        for c, col_key in enumerate(col_keys):
            cells.append(LayoutCell(grid_row, data_col + c, pivot_data.get_value(row_key, col_key), VALUE,
                                    row_key=row_key, col_key=col_key))
        cells.append(LayoutCell(grid_row, total_col, pivot_data.get_value(row_key, ()), ROW_TOTAL,
                                row_key=row_key, col_key=()))
        grid_row += 1

        if subtotals:
            for level in row_index.subtotal_levels(i):
                cells.append(LayoutCell(grid_row, level, f"Subtotal {row_attrs[level]}", SUBTOTAL_LABEL,
                                        col_span=label_width - level, row_key=row_key[:level + 1]))
                grid_row += 1

    # --- Totals row ---
    cells.append(LayoutCell(grid_row, 0, TOTALS_TEXT, TOTAL_LABEL, col_span=label_width))
    for c, col_key in enumerate(col_keys):
        cells.append(LayoutCell(grid_row, data_col + c, pivot_data.get_value((), col_key), COL_TOTAL,
                                row_key=(), col_key=col_key))
    cells.append(LayoutCell(grid_row, total_col, pivot_data.get_value((), ()), GRAND_TOTAL,
                            row_key=(), col_key=()))

    layout = TableLayout(
        cells=cells,
        n_rows=grid_row + 1,
        n_cols=total_col + 1,
        header_rows=header_rows,
        data_col=data_col,
        row_attrs=row_attrs,
        col_attrs=col_attrs,
        subtotals=subtotals,
    )
    logger.debug(f"Layout has {len(cells)} cells on a {layout.n_rows}x{layout.n_cols} grid.")
    return layout
