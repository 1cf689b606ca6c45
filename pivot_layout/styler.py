"""Applies styling and heatmap fills to a rendered pivot table sheet using openpyxl."""

import logging
import numpy as np
from openpyxl.worksheet.worksheet import Worksheet
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter
from typing import Any, Callable, Dict, Iterable, List, Optional

from .config import RenderConfig
from .exceptions import StylingError
from .layout import (
    AXIS_LABEL, COL_LABEL, COL_TOTAL, CORNER, GRAND_TOTAL, NUMERIC_KINDS, ROW_LABEL,
    ROW_TOTAL, SUBTOTAL_LABEL, TOTAL_LABEL, VALUE, LayoutCell, TableLayout,
)

logger = logging.getLogger("pivot_layout.styler")

ColorScale = Callable[[Any], Optional[str]]
ColorScaleGenerator = Callable[[List[Any]], ColorScale]

# --- Styling Constants ---
TITLE_FONT = Font(name='Calibri', size=13, bold=True)
HEADER_FONT = Font(name='Calibri', size=11, bold=True)
DEFAULT_FONT = Font(name='Calibri', size=11)
TOTAL_FONT = Font(name='Calibri', size=11, bold=True)
SUBTOTAL_FONT = Font(name='Calibri', size=11, bold=True, italic=True)

CENTER_ALIGN = Alignment(horizontal='center', vertical='center', wrap_text=True)
LEFT_TOP_ALIGN = Alignment(horizontal='left', vertical='top', wrap_text=False)
RIGHT_ALIGN = Alignment(horizontal='right', vertical='center', wrap_text=False)

THIN_BORDER_SIDE = Side(border_style="thin", color="000000")
BOX_BORDER = Border(left=THIN_BORDER_SIDE, right=THIN_BORDER_SIDE, top=THIN_BORDER_SIDE, bottom=THIN_BORDER_SIDE)

HEADER_FILL = PatternFill(start_color="EBF0F8", end_color="EBF0F8", fill_type="solid")
SUBTOTAL_FILL = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")

LABEL_COLUMN_WIDTH = 14
DATA_COLUMN_WIDTH = 11

# --- Heatmap Color Scales ---

def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        return False
    return not np.isnan(value)

def red_color_scale(values: Iterable[Any]) -> ColorScale:
    """
    Builds a white-to-red color scale over the numeric values given.

    The returned function maps x to the RGB hex string of
    rgb(255, n, n) with n = 255 - round(255 * (x - min) / (max - min)), so the
    minimum is white and the maximum pure red. A flat range maps to white.
    Non-numeric values (None, NaN, text) map to None, meaning no fill.
    """
    numeric = np.array([float(v) for v in values if _is_number(v)], dtype=float)
    if numeric.size == 0:
        return lambda x: None

    low, high = float(numeric.min()), float(numeric.max())

    def scale(x: Any) -> Optional[str]:
        if not _is_number(x):
            return None
        if high == low:
            non_red = 255
        else:
            # Round half up
            non_red = 255 - int(np.floor(255 * (float(x) - low) / (high - low) + 0.5))
        non_red = min(max(non_red, 0), 255)
        return f"FF{non_red:02X}{non_red:02X}"

    return scale

def heatmap_colors(layout: TableLayout,
                   heatmap_mode: Optional[str],
                   color_scale_generator: ColorScaleGenerator = red_color_scale) -> Dict[LayoutCell, str]:
    """
    Background colors for the numeric cells of a layout.

    Value cells share one scale ('full'), one per row key ('row') or one per
    column key ('col'). Row totals and column totals each get their own scale.
    The grand total is never colored.

    Returns:
        Mapping of cell to RGB hex string. Empty when heatmap_mode is None.
    """
    if heatmap_mode is None:
        return {}

    colors: Dict[LayoutCell, str] = {}

    def color_group(cells: List[LayoutCell]) -> None:
        scale = color_scale_generator([c.value for c in cells])
        for cell in cells:
            color = scale(cell.value)
            if color is not None:
                colors[cell] = color

    value_cells = layout.cells_of_kind(VALUE)
    if heatmap_mode == 'full':
        color_group(value_cells)
    elif heatmap_mode in ('row', 'col'):
        groups: Dict[Any, List[LayoutCell]] = {}
        for cell in value_cells:
            group_key = cell.row_key if heatmap_mode == 'row' else cell.col_key
            groups.setdefault(group_key, []).append(cell)
        for cells in groups.values():
            color_group(cells)
    else:
        raise StylingError(f"Unknown heatmap mode '{heatmap_mode}'.")

    color_group(layout.cells_of_kind(ROW_TOTAL))
    color_group(layout.cells_of_kind(COL_TOTAL))
    return colors

# --- Main Styling Function ---

def apply_styles(worksheet: Worksheet,
                 layout: TableLayout,
                 config: RenderConfig,
                 start_row: int = 2,
                 color_scale_generator: Optional[ColorScaleGenerator] = None) -> None:
    """
    Applies formatting to a worksheet holding a written TableLayout.

    Args:
        worksheet: The openpyxl Worksheet to style.
        layout: The layout that was written to the sheet.
        config: The validated configuration object.
        start_row: Excel row (1-based) of the layout's first row.
        color_scale_generator: Heatmap scale factory, red_color_scale if None.

    Raises:
        StylingError: If errors occur during styling application.
    """
    logger.info(f"Applying styles to sheet '{worksheet.title}'...")

    try:
        # --- 1. Title ---
        title_cell = worksheet.cell(row=1, column=1)
        if title_cell.value is not None:
            title_cell.font = TITLE_FONT

        colors = heatmap_colors(layout, config.heatmap_mode, color_scale_generator or red_color_scale)
        logger.debug(f"Heatmap mode {config.heatmap_mode!r} colored {len(colors)} cells.")

        # --- 2. Fonts, alignment, fills, number formats ---
        for cell in layout:
            target = worksheet.cell(row=start_row + cell.row, column=1 + cell.col)

            if cell.kind in (AXIS_LABEL, CORNER):
                target.font = HEADER_FONT
                target.alignment = CENTER_ALIGN
                target.fill = HEADER_FILL
            elif cell.kind == COL_LABEL:
                target.font = HEADER_FONT
                target.alignment = CENTER_ALIGN
            elif cell.kind == ROW_LABEL:
                target.font = HEADER_FONT
                target.alignment = LEFT_TOP_ALIGN
            elif cell.kind == TOTAL_LABEL:
                target.font = TOTAL_FONT
                target.alignment = CENTER_ALIGN
                target.fill = HEADER_FILL
            elif cell.kind == SUBTOTAL_LABEL:
                target.font = SUBTOTAL_FONT
                target.alignment = LEFT_TOP_ALIGN
                target.fill = SUBTOTAL_FILL
            elif cell.kind in NUMERIC_KINDS:
                target.font = TOTAL_FONT if cell.kind in (ROW_TOTAL, COL_TOTAL, GRAND_TOTAL) else DEFAULT_FONT
                target.alignment = RIGHT_ALIGN
                if _is_number(cell.value):
                    target.number_format = config.number_format
                color = colors.get(cell)
                if color is not None:
                    target.fill = PatternFill(start_color=color, end_color=color, fill_type="solid")

        # --- 3. Borders on every cell of the table, merged ranges included ---
        for r_idx in range(start_row, start_row + layout.n_rows):
            for c_idx in range(1, layout.n_cols + 1):
                worksheet.cell(row=r_idx, column=c_idx).border = BOX_BORDER

        # --- 4. Column widths ---
        for c_idx in range(1, layout.n_cols + 1):
            width = LABEL_COLUMN_WIDTH if c_idx <= layout.data_col else DATA_COLUMN_WIDTH
            worksheet.column_dimensions[get_column_letter(c_idx)].width = width

        logger.info(f"Styling applied successfully to sheet '{worksheet.title}'.")

    except StylingError:
        raise
    except Exception as e:
        logger.error(f"An unexpected error occurred during styling application for sheet '{worksheet.title}': {e}", exc_info=True)
        raise StylingError(f"Failed to apply styles to sheet '{worksheet.title}'. Error: {e}") from e
